from typing import Optional


class MltXmlCheckError(Exception):
    """Terminal failure of one checker run.

    ``code`` is one of ``NOT_MLT``, ``MALFORMED``, ``UNSUPPORTED`` or
    ``IO_ERROR``. Parse failures also carry the parser position when it is
    known.
    """

    def __init__(
        self,
        code: str,
        message: str,
        malformed: bool = False,
        line: Optional[int] = None,
        column: Optional[int] = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.malformed = malformed
        self.line = line
        self.column = column

    def to_dict(self) -> dict:
        data = {"code": self.code, "message": self.message, "malformed": self.malformed}
        if self.line is not None:
            data["line"] = self.line
            data["column"] = self.column
        return data


def not_mlt_error() -> MltXmlCheckError:
    return MltXmlCheckError("NOT_MLT", "The file is not a MLT XML file.")


def malformed_error(message: str, line: Optional[int] = None, column: Optional[int] = None) -> MltXmlCheckError:
    return MltXmlCheckError("MALFORMED", message, malformed=True, line=line, column=column)


def unsupported_error(message: str, line: Optional[int] = None, column: Optional[int] = None) -> MltXmlCheckError:
    return MltXmlCheckError("UNSUPPORTED", message, line=line, column=column)
