"""Backend adapter interface implemented once per resource kind."""

from __future__ import annotations

from typing import Protocol

from ...models import ManagedObject, Observation
from ...utils.context import PassContext


class BackendAdapter(Protocol):
    """Protocol defining the four operations the engine drives.

    Implementations translate a managed object into calls against the real
    backend. Every call receives the pass context and must honour its deadline
    and cancellation.
    """

    def observe(self, ctx: PassContext, obj: ManagedObject) -> Observation:
        """Compare backend reality with the desired state.

        Must be side-effect free. May raise ``PreconditionUnmet`` when a
        dependency is not ready.
        """
        ...

    def create(self, ctx: PassContext, obj: ManagedObject) -> None:
        """Create the resource described by the object."""
        ...

    def update(self, ctx: PassContext, obj: ManagedObject) -> None:
        """Bring the existing resource in line with the object."""
        ...

    def delete(self, ctx: PassContext, obj: ManagedObject) -> None:
        """Delete the resource.

        Raises ``NotFoundOnDelete`` when the resource is already gone, and may
        raise ``PreconditionUnmet`` when dependants block the removal.
        """
        ...
