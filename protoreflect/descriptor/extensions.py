from collections.abc import Iterator

from .types import DescriptorError, ExtensionDescriptor


class ExtensionRegistry:
    """Index of extension fields by (extended message name, field number).

    Each pool owns its own registry, so two pools may declare different
    extensions of the same message without seeing each other's.
    """

    def __init__(self) -> None:
        self._by_number: dict[tuple[str, int], ExtensionDescriptor] = {}
        self._by_json_name: dict[tuple[str, str], ExtensionDescriptor] = {}
        self._by_extendee: dict[str, list[ExtensionDescriptor]] = {}
        self._frozen = False

    def register(self, extension: ExtensionDescriptor) -> None:
        if self._frozen:
            raise DescriptorError("Extension registry is frozen")

        extendee = extension.containing_message.full_name
        key = (extendee, extension.number)
        existing = self._by_number.get(key)
        if existing is not None:
            raise DescriptorError(
                f"Extension number {extension.number} of {extendee} is declared by both "
                f"{existing.full_name} and {extension.full_name}"
            )

        self._by_number[key] = extension
        self._by_json_name[(extendee, extension.json_name)] = extension
        self._by_json_name[(extendee, extension.full_name)] = extension
        self._by_extendee.setdefault(extendee, []).append(extension)

    def freeze(self) -> None:
        self._frozen = True

    def get(self, extendee: str, number: int) -> ExtensionDescriptor | None:
        return self._by_number.get((extendee, number))

    def get_by_json_name(self, extendee: str, json_name: str) -> ExtensionDescriptor | None:
        """Look up by ``[full.name]``; the bare full name is accepted too."""
        return self._by_json_name.get((extendee, json_name))

    def extensions_of(self, extendee: str) -> tuple[ExtensionDescriptor, ...]:
        return tuple(self._by_extendee.get(extendee, ()))

    def __len__(self) -> int:
        return len(self._by_number)

    def __iter__(self) -> Iterator[ExtensionDescriptor]:
        return iter(self._by_number.values())
