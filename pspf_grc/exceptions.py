"""Error taxonomy for the PSPF GRC tracker"""


class GRCError(Exception):
    """Base class for all tracker errors"""


class DuplicateCodeError(GRCError):
    """A requirement code is already used by a live requirement"""

    def __init__(self, code: str):
        super().__init__(f"A requirement with code {code!r} already exists")
        self.code = code


class DuplicateTagError(GRCError):
    """A tag with the same normalized id already exists"""

    def __init__(self, tag_id: str):
        super().__init__(f"A tag with id {tag_id!r} already exists")
        self.tag_id = tag_id


class UnknownDomainError(GRCError):
    """The domain id is not one of the fixed domains"""

    def __init__(self, domain_id: str):
        super().__init__(f"Unknown domain {domain_id!r}")
        self.domain_id = domain_id


class NotFoundError(GRCError):
    """The target of a mutation does not exist"""

    def __init__(self, kind: str, key: str):
        super().__init__(f"{kind} {key!r} not found")
        self.kind = kind
        self.key = key


class ValidationError(GRCError, ValueError):
    """Input rejected before any store was touched"""


class FormatError(GRCError):
    """A snapshot has an unrecognized version or shape"""


class PersistenceError(GRCError):
    """The storage collaborator failed to save a store family"""

    def __init__(self, key: str, cause: Exception):
        super().__init__(f"Failed to save {key!r}: {cause}")
        self.key = key
        self.cause = cause
