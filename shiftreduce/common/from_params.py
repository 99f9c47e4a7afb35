import inspect
import logging
from typing import Any, Callable, Dict, Type, TypeVar, Union, cast

from shiftreduce.common.checks import ConfigurationError
from shiftreduce.common.params import Params

logger = logging.getLogger(__name__)

T = TypeVar("T", bound="FromParams")

# If a function parameter has no default value specified,
# this is what the inspect module returns.
_NO_DEFAULT = inspect.Parameter.empty


def takes_arg(obj, arg: str) -> bool:
    """
    Checks whether the provided obj takes a certain arg.
    If it's a class, we're really checking whether its constructor does.
    If it's a function or method, we're checking the object itself.
    Otherwise, we raise an error.
    """
    if inspect.isclass(obj):
        signature = inspect.signature(obj.__init__)
    elif inspect.ismethod(obj) or inspect.isfunction(obj):
        signature = inspect.signature(obj)
    else:
        raise ConfigurationError(f"object {obj} is not callable")
    return arg in signature.parameters


def is_base_registrable(cls) -> bool:
    """
    Checks whether this is a class that directly inherits from Registrable.
    """
    from shiftreduce.common.registrable import Registrable  # import here to avoid circular imports

    if not issubclass(cls, Registrable):
        return False
    method_resolution_order = inspect.getmro(cls)[1:]
    for base_class in method_resolution_order:
        if issubclass(base_class, Registrable) and base_class is not Registrable:
            return False
    return True


def remove_optional(annotation: type):
    """
    Optional[X] annotations are actually represented as Union[X, NoneType].
    For our purposes, the "Optional" part is not interesting, so here we
    throw it away.
    """
    origin = getattr(annotation, "__origin__", None)
    args = getattr(annotation, "__args__", ())

    if origin == Union:
        non_none = [arg for arg in args if arg != type(None)]  # noqa: E721
        if len(non_none) == 1:
            return non_none[0]
        return Union[tuple(non_none)]
    else:
        return annotation


def create_kwargs(
    constructor: Callable[..., T], cls: Type[T], params: Params, **extras
) -> Dict[str, Any]:
    """
    Given some class, a `Params` object, and potentially other keyword arguments,
    create a dict of keyword args suitable for passing to the class's constructor.

    Any values that are provided in the `extras` will just be used as is.
    For instance, you might provide an existing `Vocabulary` this way.
    """
    kwargs: Dict[str, Any] = {}

    signature = inspect.signature(constructor)
    for param_name, param in signature.parameters.items():
        if param_name == "self":
            continue
        if param.kind in (param.VAR_KEYWORD, param.VAR_POSITIONAL):
            continue

        if param_name in extras and param_name not in params:
            kwargs[param_name] = extras[param_name]
            continue

        annotation = remove_optional(param.annotation)
        if param.default is _NO_DEFAULT:
            popped_params = params.pop(param_name)
        elif param_name in params:
            popped_params = params.pop(param_name)
        else:
            continue

        kwargs[param_name] = construct_arg(
            cls.__name__, param_name, popped_params, annotation, **extras
        )

    params.assert_empty(cls.__name__)
    return kwargs


def construct_arg(
    class_name: str, argument_name: str, popped_params: Any, annotation: Type, **extras
) -> Any:
    """
    Builds one constructor argument from its popped value and its type annotation.  The first
    two parameters here are only used for error messages.
    """
    if popped_params is None:
        return None

    if hasattr(annotation, "from_params"):
        if isinstance(popped_params, (Params, str)):
            subextras = {k: v for k, v in extras.items() if takes_arg(annotation.from_params, k)}
            return annotation.from_params(popped_params, **subextras)
        if isinstance(popped_params, annotation):
            return popped_params
        raise ConfigurationError(
            f"expected a configuration for {argument_name} of {class_name}, got {popped_params}"
        )
    elif annotation in (int, bool):
        if type(popped_params) in (int, bool):
            return annotation(popped_params)
        raise TypeError(f"Expected {argument_name} to be a {annotation.__name__}.")
    elif annotation == float:
        if type(popped_params) in (int, float):
            return float(popped_params)
        raise TypeError(f"Expected {argument_name} to be numeric.")
    elif annotation == str:
        if isinstance(popped_params, str):
            return popped_params
        raise TypeError(f"Expected {argument_name} to be a string.")
    elif isinstance(popped_params, Params):
        return popped_params.as_dict(quiet=True)
    else:
        return popped_params


class FromParams:
    """
    Mixin to give a from_params method to classes. We create a distinct base class for this
    because sometimes we want non-Registrable classes to be instantiatable from_params.
    """

    @classmethod
    def from_params(
        cls: Type[T],
        params: Union[Params, str],
        constructor_to_call: Callable[..., T] = None,
        **extras,
    ) -> T:
        """
        Instantiates an object of this class from a `Params` object, popping each constructor
        argument by name and recursively building arguments whose annotation is itself
        `FromParams`.  For a `Registrable` base class the `"type"` key picks the registered
        subclass; a bare string is shorthand for `{"type": string}`.
        """
        # import here to avoid circular imports
        from shiftreduce.common.registrable import Registrable

        logger.debug(
            f"instantiating class {cls} from params {getattr(params, 'params', params)} "
            f"and extras {set(extras.keys())}"
        )

        if params is None:
            return None

        if isinstance(params, str):
            params = Params({"type": params})

        if not isinstance(params, Params):
            raise ConfigurationError(
                "from_params was passed a `params` object that was not a `Params`. This probably "
                "indicates malformed parameters in a configuration file. "
                f"This happened when constructing an object of type {cls}."
            )

        registered_subclasses = Registrable._registry.get(cls)

        if is_base_registrable(cls) and not registered_subclasses:
            raise ConfigurationError(
                "Tried to construct an abstract Registrable base class that has no registered "
                "concrete types."
            )

        if registered_subclasses and constructor_to_call is None:
            as_registrable = cast(Type[Registrable], cls)
            choice = params.pop_choice(
                "type",
                choices=as_registrable.list_available(),
                default_to_first_choice=as_registrable.default_implementation is not None,
            )
            subclass, constructor_name = as_registrable.resolve_class_name(choice)
            if not hasattr(subclass, "from_params"):
                # Registered third-party classes (torch activations) take their params as-is.
                return subclass(**params.as_dict(quiet=True))  # type: ignore
            constructor = getattr(subclass, constructor_name) if constructor_name else subclass
            return subclass.from_params(params, constructor_to_call=constructor, **extras)

        constructor_to_call = constructor_to_call or cls
        if constructor_to_call is cls:
            constructor_to_inspect = cls.__init__
        else:
            constructor_to_inspect = constructor_to_call

        if constructor_to_inspect == object.__init__:
            params.assert_empty(cls.__name__)
            return constructor_to_call()
        kwargs = create_kwargs(constructor_to_inspect, cls, params, **extras)
        return constructor_to_call(**kwargs)
