"""
Mun Entry-Point Invoker

Resolves an entry point by name, decides from its return type's identity
token how the result is decoded, invokes it and prints the value.
"""

from typing import Callable

from muncli.errors import EntryPointNotFoundError, InvocationError, UnsupportedReturnTypeError
from muncli.logging import ExitStatus, get_logger, log_extra
from muncli.runtime.handle import RuntimeHandle
from muncli.runtime.types import UnsupportedType, decodable_type

logger = get_logger(__name__)

DEFAULT_ENTRY_POINT = "main"


def invoke_entry_point(
    handle: RuntimeHandle,
    entry: str = DEFAULT_ENTRY_POINT,
    echo: Callable[[str], None] = print,
) -> ExitStatus:
    """
    Invoke ``entry`` and print its result, if it has one.

    Raises:
        EntryPointNotFoundError: if the library does not export ``entry``
        UnsupportedReturnTypeError: if the return type is not a native type;
            raised before anything is called
        InvocationError: if the call itself fails
    """
    definition = handle.get_function_definition(entry)
    if definition is None:
        raise EntryPointNotFoundError(
            f"Failed to obtain entry point '{entry}'",
            metadata={"entry": entry},
        )

    native_type = None
    if definition.return_type is not None:
        decoded = decodable_type(definition.return_type)
        if isinstance(decoded, UnsupportedType):
            raise UnsupportedReturnTypeError(
                f"Only native Mun return types are supported for entry points. Found: {decoded.name}",
                type_name=decoded.name,
                metadata={"entry": entry},
            )
        native_type = decoded

    try:
        value = handle.invoke(definition, native_type)
    except Exception as exc:
        raise InvocationError(str(exc) or type(exc).__name__, metadata={"entry": entry}) from exc

    logger.info(
        "entry_point_invoked",
        extra=log_extra(
            entry=entry,
            return_type=native_type.type_name if native_type is not None else None,
        ),
    )
    if native_type is not None:
        echo(native_type.format(value))
    return ExitStatus.SUCCESS
