from typing import Any, Generic, Protocol, TypeVar

# Base registry implementation
T = TypeVar("T")


class Registry(Generic[T]):
    """Generic registry for pluggable implementations."""

    def __init__(self, name: str):
        self.name = name
        self._implementations: dict[str, T] = {}
        self._frozen = False

    def register(self, name: str, implementation: T) -> None:
        """Register an implementation with a given name."""
        if self._frozen:
            raise RuntimeError(
                f"Cannot register '{name}' in {self.name.lower()} registry: "
                "registry is frozen in production mode"
            )
        self._implementations[name] = implementation

    def get(self, name: str) -> T:
        """Get an implementation by name."""
        if name not in self._implementations:
            raise KeyError(
                f"No {self.name.lower()} implementation registered with name: {name}"
            )
        return self._implementations[name]

    def list(self) -> list[str]:
        """List all registered implementation names."""
        return list(self._implementations.keys())

    def freeze(self) -> None:
        """Freeze the registry to prevent further modifications."""
        self._frozen = True

    def is_frozen(self) -> bool:
        """Check if the registry is frozen."""
        return self._frozen


# Job Executor Registry - one executor per job kind
class JobExecutor(Protocol):
    """Protocol for executors that perform a single group job attempt."""

    async def execute(self, job: Any) -> Any:
        """
        Perform one attempt of the job against the messaging platform.

        Returns a JobExecutionResult. May raise on transport failure, which
        the job worker counts as a failed attempt.
        """
        ...


class JobExecutorRegistry(Registry[JobExecutor]):
    """Registry for job executors (add_to_group, create_group)."""

    def __init__(self):
        super().__init__("JobExecutor")


# Global registry instance
job_executor_registry = JobExecutorRegistry()
