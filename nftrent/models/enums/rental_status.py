from enum import Enum


# https://github.com/fastapi/sqlmodel/issues/96#issuecomment-921179607
class RentalStatus(str, Enum):
    ACTIVE = "active"
    # terminal, a returned rental is kept as history and never reopened
    RETURNED = "returned"
