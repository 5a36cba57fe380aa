from enum import Enum


class IdentifierType(str, Enum):
    ISBN = "ISBN"
    ISMN = "ISMN"
    ISSN = "ISSN"


# Digits available for publisher part + item part of a 13 digit identifier
# once prefix, registration group and check digit are accounted for.
ISBN_RANGE_LENGTH = 6
ISMN_RANGE_LENGTH = 8

# Length of a formatted ISBN-13/ISMN including hyphens.
FORMATTED_IDENTIFIER_LENGTH = 17

ISBN_PREFIXES = (978, 979)
ISMN_PREFIX = "979-0"
ISBN_CATEGORIES = (1, 2, 3, 4, 5)
ISMN_CATEGORIES = (3, 5, 6, 7)

CANCELED_SUBRANGE_PREFIX = "can_"


class PublicationType(str, Enum):
    BOOK = "BOOK"
    DISSERTATION = "DISSERTATION"
    MAP = "MAP"
    SHEET_MUSIC = "SHEET_MUSIC"
    OTHER = "OTHER"


class PublicationFormat(str, Enum):
    PRINT = "PRINT"
    ELECTRONICAL = "ELECTRONICAL"
    PRINT_ELECTRONICAL = "PRINT_ELECTRONICAL"


PRINT_TYPES = ("PAPERBACK", "HARDBACK", "SPIRAL_BINDING", "OTHER_PRINT")
ELECTRONICAL_TYPES = ("PDF", "EPUB", "CD_ROM", "MP3", "OTHER")


class IssnFormStatus(str, Enum):
    NOT_HANDLED = "NOT_HANDLED"
    NOT_NOTIFIED = "NOT_NOTIFIED"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"


class IssnPublicationStatus(str, Enum):
    NO_ISSN_GRANTED = "NO_ISSN_GRANTED"
    NO_PREPUBLICATION_RECORD = "NO_PREPUBLICATION_RECORD"
    ISSN_FROZEN = "ISSN_FROZEN"
    WAITING_FOR_CONTROL_COPY = "WAITING_FOR_CONTROL_COPY"
    COMPLETED = "COMPLETED"


class IssnMedium(str, Enum):
    PRINTED = "PRINTED"
    ONLINE = "ONLINE"
    CDROM = "CDROM"
    OTHER = "OTHER"


ADMIN_ROLE = "ADMIN"
SYSTEM_ACTOR = "system@local"
