"""Exception types raised by habitatlink."""


class HabitatLinkError(Exception):
    """Base class for all habitatlink errors."""


class AnchorError(HabitatLinkError, ValueError):
    """An anchor definition is malformed or fails validation."""


class LayoutError(HabitatLinkError, ValueError):
    """A layout file or settings block is malformed."""


class UnknownModuleError(HabitatLinkError, KeyError):
    """A module id was looked up explicitly but is not registered."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the message readable
        return str(self.args[0]) if self.args else ""
