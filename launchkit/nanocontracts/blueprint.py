import copy
from typing import TYPE_CHECKING, Any, get_origin

from launchkit.nanocontracts.exception import NCFail, NCViewMethodError

if TYPE_CHECKING:
    from launchkit.nanocontracts.runner import SyscallEnvironment

_CONTAINER_TYPES = (dict, list)


def _is_container_annotation(annotation: Any) -> bool:
    if isinstance(annotation, str):
        return annotation.startswith(('dict[', 'list['))
    return annotation in _CONTAINER_TYPES or get_origin(annotation) in _CONTAINER_TYPES


class Blueprint:
    """Base class of every contract.

    Persistent fields are declared as class annotations. Containers (`dict`
    and `list` fields) start empty; every other field is unset until the
    contract assigns it, usually in `initialize`. Runtime attributes are
    prefixed with `_nc_` and never persisted.
    """

    __fields__: dict[str, Any] = {}

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        fields: dict[str, Any] = {}
        for klass in reversed(cls.__mro__):
            for name, annotation in vars(klass).get('__annotations__', {}).items():
                if name.startswith('_') or name == 'syscall':
                    continue
                fields[name] = annotation
        cls.__fields__ = fields

    def __init__(self, syscall: 'SyscallEnvironment') -> None:
        object.__setattr__(self, '_nc_syscall', syscall)
        object.__setattr__(self, '_nc_readonly', False)
        for name, annotation in self.__fields__.items():
            if _is_container_annotation(annotation):
                origin = get_origin(annotation) or annotation
                if isinstance(annotation, str):
                    origin = dict if annotation.startswith('dict[') else list
                object.__setattr__(self, name, origin())

    def __setattr__(self, name: str, value: Any) -> None:
        if self.__dict__.get('_nc_readonly', False):
            raise NCViewMethodError(f'cannot set {name} during a view call')
        if name not in self.__fields__ and not name.startswith('_nc_'):
            raise NCFail(f'{type(self).__name__} has no field {name}')
        object.__setattr__(self, name, value)

    def __delattr__(self, name: str) -> None:
        if self.__dict__.get('_nc_readonly', False):
            raise NCViewMethodError(f'cannot delete {name} during a view call')
        object.__delattr__(self, name)

    @property
    def syscall(self) -> 'SyscallEnvironment':
        return self._nc_syscall

    def _nc_get_state(self) -> dict[str, Any]:
        """Deep copy of every assigned field."""
        return {name: copy.deepcopy(self.__dict__[name]) for name in self.__fields__ if name in self.__dict__}

    def _nc_set_state(self, state: dict[str, Any]) -> None:
        for name in self.__fields__:
            self.__dict__.pop(name, None)
        self.__dict__.update(state)
