"""Exception types raised by the WAD codec, the script host and the driver."""


class WadError(ValueError):
    """Base class for container and record decoding failures."""


class BadTag(WadError):
    """The container type tag is neither IWAD nor PWAD."""


class Truncated(WadError):
    """A header, directory or lump byte range runs past the end of the data."""


class MissingMarker(WadError):
    """The map marker lump is absent or is not zero-length."""


class IncompleteMapGroup(WadError):
    """A required map lump is missing or out of order."""


class MalformedRecord(WadError):
    """A record lump has a bad length, or a field does not fit its width."""


class DanglingReference(WadError):
    """A map entity refers to an index outside its target list."""


class ScriptError(RuntimeError):
    """A map script raised while running."""


class BuildError(RuntimeError):
    """A child process of the build (script runner or node builder) failed."""
