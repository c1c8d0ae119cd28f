"""Style template catalog loaded from YAML."""

from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence
import yaml
from pydantic import ValidationError

from ..models.schemas import StyleTemplate
from ..models.enums import StyleCategory
from ..utils.logger import get_logger
from ..utils.errors import ConfigurationError, InputError, UnknownStyleError

logger = get_logger(__name__)

DEFAULT_STYLES_PATH = Path(__file__).resolve().parent.parent / "config" / "styles.yaml"


class StyleCatalog:
    """Immutable, ordered collection of style templates."""

    def __init__(self, styles: Sequence[StyleTemplate]):
        if not styles:
            raise ConfigurationError("Style catalog is empty")

        self._styles = tuple(styles)
        self._by_id: Dict[str, StyleTemplate] = {}
        for style in self._styles:
            if style.id in self._by_id:
                raise ConfigurationError(f"Duplicate style id: {style.id}")
            self._by_id[style.id] = style

    def __iter__(self) -> Iterator[StyleTemplate]:
        return iter(self._styles)

    def __len__(self) -> int:
        return len(self._styles)

    def __contains__(self, style_id: str) -> bool:
        return style_id in self._by_id

    @property
    def ids(self) -> List[str]:
        return [style.id for style in self._styles]

    def get(self, style_id: str) -> StyleTemplate:
        """
        Look up a style by id.

        Raises:
            UnknownStyleError: If the id is not in the catalog
        """
        try:
            return self._by_id[style_id]
        except KeyError:
            raise UnknownStyleError(style_id)

    def by_category(self) -> Dict[StyleCategory, List[StyleTemplate]]:
        """Group styles for presentation, preserving catalog order within each group."""
        groups: Dict[StyleCategory, List[StyleTemplate]] = {}
        for style in self._styles:
            groups.setdefault(style.category, []).append(style)
        return groups


def load_styles(path: Optional[Path] = None) -> StyleCatalog:
    """
    Load the style catalog.

    Args:
        path: YAML file with a top-level `styles` list (defaults to the packaged catalog)

    Returns:
        StyleCatalog

    Raises:
        ConfigurationError: If the file is missing or invalid
    """
    path = Path(path) if path else DEFAULT_STYLES_PATH

    if not path.exists():
        raise ConfigurationError(f"styles.yaml not found at {path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Failed to parse {path}: {e}")

    entries = data.get("styles") if isinstance(data, dict) else None
    if not isinstance(entries, list):
        raise ConfigurationError(f"{path} must contain a 'styles' list")

    try:
        styles = [StyleTemplate(**entry) for entry in entries]
    except (TypeError, ValidationError) as e:
        raise ConfigurationError(f"Invalid style entry in {path}: {e}")

    catalog = StyleCatalog(styles)

    logger.info(
        "Style catalog loaded",
        extra={"styles_count": len(catalog), "path": str(path)}
    )

    return catalog


def resolve_prompt(
    catalog: StyleCatalog,
    style_id: Optional[str] = None,
    custom_prompt: Optional[str] = None,
) -> str:
    """
    Pick the prompt for a single generation.

    A non-blank custom prompt wins over a selected style.

    Raises:
        InputError: If neither a style nor a custom prompt is given
        UnknownStyleError: If the style id is not in the catalog
    """
    if custom_prompt and custom_prompt.strip():
        return custom_prompt.strip()

    if style_id:
        return catalog.get(style_id).prompt_text

    raise InputError("Please select a style or write a custom prompt")
