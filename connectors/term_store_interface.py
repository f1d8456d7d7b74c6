from typing import Iterable, Protocol

from box import Box

from media_directory.models import FieldDefinition, FlatTreeEntry, MediaType, Term, Vocabulary


class TermStore(Protocol):
    """
    Protocol for the storage backing taxonomy terms and media field configuration.
    Implementations may keep everything in memory or talk to a remote daemon.
    Query results must be consistent within a single request.
    """

    def find_term(self, name: str, vid: str) -> int | None:
        """Return the tid of the first term called ``name`` in ``vid``, if any."""
        ...

    def load_terms(self, tids: Iterable[int]) -> dict[int, Term]:
        """Load terms by tid. Unknown tids are left out of the result."""
        ...

    def create_term(self, name: str, parent: int | None, vid: str) -> Term: ...

    def tree_listing(self, vid: str) -> list[FlatTreeEntry]:
        """
        Return every term of ``vid`` as a pre-order, depth-annotated listing,
        starting at the vocabulary root.
        """
        ...

    def list_vocabularies(self) -> list[Vocabulary]: ...
    def get_vocabulary(self, vid: str) -> Vocabulary | None: ...
    def list_media_types(self) -> list[MediaType]: ...
    def get_media_type(self, type_id: str) -> MediaType | None: ...
    def get_field(self, bundle: str, field_name: str) -> FieldDefinition | None: ...
    def save_field(self, field: FieldDefinition) -> FieldDefinition: ...
    def set_form_display(self, bundle: str, field_name: str, widget: str, weight: int = 0) -> None: ...

    @property
    def info(self) -> Box:
        """
        Returns information about the store, such as its type and location, as a Box.
        """
        ...
