"""
Link Graph between ledger movements, XML lines and declaration files.

The graph owns the ordered movement list. Links are stored on the movements
(forward direction); reverse lookups are computed by scanning, so there is no
secondary index to keep consistent.

Key invariants:
- Link creation is idempotent: (file_id, line_id) for xml links,
  file name for declaration links
- Removing a line file does not touch links; they become dangling (inert)
  until the user prunes them
"""

import logging
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass, replace
from typing import NamedTuple

from ..errors import MovementNotFoundError
from ..line_store import LineStore
from ..schemas.audit import AuditFileCategory, AuditFileRegistry
from ..schemas.lines import Line, LineFile
from ..schemas.movements import LinkType, Movement, SmartLink

logger = logging.getLogger(__name__)


class LinkKey(NamedTuple):
    """Identifies one link inside a movement's link sets."""

    type: LinkType
    file_id: str | None = None
    line_id: str | None = None
    file_name: str | None = None

    @classmethod
    def xml(cls, file_id: str, line_id: str) -> "LinkKey":
        return cls(LinkType.XML, file_id=file_id, line_id=line_id)

    @classmethod
    def pdf(cls, file_name: str) -> "LinkKey":
        return cls(LinkType.PDF, file_name=file_name)

    def matches(self, link: SmartLink) -> bool:
        if link.type != self.type:
            return False
        if self.type == LinkType.XML:
            return link.target_file_id == self.file_id and link.target_line_id == self.line_id
        return link.target_file_name == self.file_name


@dataclass(frozen=True)
class LinkTarget:
    """A live link destination."""

    link: SmartLink
    file_id: str
    file_name: str
    line_file: LineFile | None = None
    line: Line | None = None
    line_index: int | None = None


def xml_link_label(file_name: str, line_index: int) -> str:
    """Label shown for a movement-to-line link."""
    return f"XML: {file_name} (Línea {line_index + 1})"


class LinkGraph:
    """Movements plus their outgoing links (replace-on-write)."""

    def __init__(self, movements: Iterable[Movement] = ()):
        self._movements: tuple[Movement, ...] = tuple(movements)
        self._lock = threading.RLock()

    @property
    def movements(self) -> tuple[Movement, ...]:
        return self._movements

    def __len__(self) -> int:
        return len(self._movements)

    def find_movement(self, movement_id: str) -> Movement | None:
        for movement in self._movements:
            if movement.id == movement_id:
                return movement
        return None

    def get_movement(self, movement_id: str) -> Movement:
        movement = self.find_movement(movement_id)
        if movement is None:
            raise MovementNotFoundError(f"Unknown movement: {movement_id}")
        return movement

    def replace_movements(self, movements: Iterable[Movement]) -> None:
        """Replace the whole movement list (template generation)."""
        with self._lock:
            self._movements = tuple(movements)
        logger.info(f"Movement list replaced ({len(self._movements)} movements)")

    def update_movement(
        self, movement_id: str, change: Callable[[Movement], Movement]
    ) -> Movement:
        """Replace one movement with change(movement)."""
        with self._lock:
            current = self.get_movement(movement_id)
            updated = change(current)
            if updated is not current:
                self._movements = tuple(
                    updated if m.id == movement_id else m for m in self._movements
                )
            return updated

    def update_movements(
        self, movement_ids: set[str], change: Callable[[Movement], Movement]
    ) -> int:
        """Apply change() to every movement in movement_ids. Returns the count."""
        if not movement_ids:
            return 0
        with self._lock:
            self._movements = tuple(
                change(m) if m.id in movement_ids else m for m in self._movements
            )
            return sum(1 for m in self._movements if m.id in movement_ids)

    # Link mutations

    def add_xml_link(
        self,
        movement_id: str,
        file_id: str,
        line_id: str,
        label: str,
        file_name: str,
    ) -> Movement:
        """Link a movement to an XML line (no-op if the link exists)."""

        def change(movement: Movement) -> Movement:
            if movement.has_xml_link(file_id, line_id):
                return movement
            link = SmartLink(
                type=LinkType.XML,
                label=label,
                target_file_name=file_name,
                target_file_id=file_id,
                target_line_id=line_id,
            )
            return replace(movement, linked_xmls=movement.linked_xmls + (link,))

        return self.update_movement(movement_id, change)

    def add_declaration_link(
        self, movement_id: str, file_name: str, label: str | None = None
    ) -> Movement:
        """Link a movement to a declaration file (no-op if the link exists)."""

        def change(movement: Movement) -> Movement:
            if movement.has_declaration_link(file_name):
                return movement
            link = SmartLink(
                type=LinkType.PDF,
                label=label or f"PDF: {file_name}",
                target_file_name=file_name,
            )
            return replace(movement, linked_declarations=movement.linked_declarations + (link,))

        return self.update_movement(movement_id, change)

    def remove_link(self, movement_id: str, key: LinkKey) -> bool:
        """Remove one link. Returns False if it was not there."""
        removed = False

        def change(movement: Movement) -> Movement:
            nonlocal removed
            if key.type == LinkType.XML:
                kept = tuple(link for link in movement.linked_xmls if not key.matches(link))
                removed = len(kept) != len(movement.linked_xmls)
                return replace(movement, linked_xmls=kept) if removed else movement
            kept = tuple(link for link in movement.linked_declarations if not key.matches(link))
            removed = len(kept) != len(movement.linked_declarations)
            return replace(movement, linked_declarations=kept) if removed else movement

        self.update_movement(movement_id, change)
        return removed

    # Reverse queries

    def links_for_line(self, file_id: str, line_id: str) -> set[str]:
        """Ids of movements linked to an XML line."""
        return {m.id for m in self._movements if m.has_xml_link(file_id, line_id)}

    def links_for_line_id(self, line_id: str) -> set[str]:
        """Ids of movements linked to a line id, whatever the stored file id."""
        return {
            m.id
            for m in self._movements
            if any(link.target_line_id == line_id for link in m.linked_xmls)
        }

    def links_for_declaration(self, file_name: str) -> set[str]:
        """Ids of movements linked to a declaration file."""
        return {m.id for m in self._movements if m.has_declaration_link(file_name)}

    # Integrity

    def resolve_link(
        self,
        link: SmartLink,
        line_store: LineStore,
        registry: AuditFileRegistry | None = None,
    ) -> LinkTarget | None:
        """
        Resolve a link to its live destination.

        Args:
            link: Link to follow
            line_store: Store holding XML lines
            registry: Upload registry, needed to resolve declaration links

        Returns:
            LinkTarget, or None if the link is dangling
        """
        if link.type == LinkType.XML:
            if not link.target_line_id:
                return None
            line_file = line_store.find_file(link.target_file_id) if link.target_file_id else None
            if line_file is not None:
                index = line_file.index_of(link.target_line_id)
            else:
                located = line_store.locate(link.target_line_id)
                line_file, index = located if located else (None, None)
            if line_file is None or index is None:
                return None
            return LinkTarget(
                link=link,
                file_id=line_file.id,
                file_name=line_file.name,
                line_file=line_file,
                line=line_file.lines[index],
                line_index=index,
            )

        if registry is None:
            return None
        entry = registry.find_by_name(AuditFileCategory.DECLARACIONES, link.target_file_name)
        if entry is None:
            return None
        return LinkTarget(link=link, file_id=entry.id, file_name=entry.name)

    def dangling_links(
        self, line_store: LineStore, registry: AuditFileRegistry | None = None
    ) -> list[tuple[str, SmartLink]]:
        """
        List (movement_id, link) pairs that no longer resolve.

        Declaration links are only checked when a registry is given.
        """
        dangling = []
        for movement in self._movements:
            for link in movement.linked_xmls:
                if self.resolve_link(link, line_store) is None:
                    dangling.append((movement.id, link))
            if registry is not None:
                for link in movement.linked_declarations:
                    if self.resolve_link(link, line_store, registry) is None:
                        dangling.append((movement.id, link))
        return dangling

    def prune_dangling(
        self, line_store: LineStore, registry: AuditFileRegistry | None = None
    ) -> int:
        """Remove every dangling link. Returns the number removed."""
        dangling = self.dangling_links(line_store, registry)
        for movement_id, link in dangling:
            if link.type == LinkType.XML:
                key = LinkKey.xml(link.target_file_id, link.target_line_id)
            else:
                key = LinkKey.pdf(link.target_file_name)
            self.remove_link(movement_id, key)
        if dangling:
            logger.info(f"Pruned {len(dangling)} dangling links")
        return len(dangling)
