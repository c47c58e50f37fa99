"""
Error taxonomy for the resolver.

Only DecryptionFailure is meaningful to callers, and even that is reported
through DecryptionResult rather than raised past the resolver. The others
never leave their component: decoders and the unpacker catch
MalformedInput and hand back their input, the engine turns ProbeError
into an empty detector contribution.
"""


class ResolverError(Exception):
    """Base class for everything raised inside the resolver."""


class MalformedInput(ResolverError, ValueError):
    """Input does not have the structure a transform expects."""


class DecryptionFailure(ResolverError):
    """A single key/IV combination did not produce valid plaintext."""


class ProbeError(ResolverError):
    """A page probe answered with something other than the agreed shape."""
