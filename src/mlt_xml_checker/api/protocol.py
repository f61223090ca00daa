PROTOCOL_VERSION = "1.0"

ERROR_CODES = {
    "ERROR": 1,
    "INVALID_INPUT": 2,
    "NOT_FOUND": 3,
    "NOT_MLT": 4,
    "MALFORMED": 5,
    "IO_ERROR": 6,
    "UNLINKED_FILES": 7,
    "UNSUPPORTED": 8,
}
