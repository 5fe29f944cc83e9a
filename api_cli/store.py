"""api-cli store - collection, environment and request files on disk.

Layout under the base directory:

    <collection>/collection.yaml
    <collection>/environments/<environment>.yaml
    <collection>/<request>.yaml
    <collection>/<folder>/<request>.yaml     (request id "folder:request")
"""

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, ValidationError

from api_cli.errors import AlreadyExistsError, DeserializationError, IoError, NotFoundError
from api_cli.models import CollectionModel, EnvironmentModel, RequestModel

logger = logging.getLogger(__name__)

COLLECTION_FILE = "collection.yaml"
ENVIRONMENTS_DIR = "environments"
EXT = ".yaml"


def read_file(path: Path, model: type[BaseModel]) -> BaseModel:
    """Read a YAML definition file and validate it into *model*."""
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise IoError(e, path) from e
    except (UnicodeDecodeError, yaml.YAMLError) as e:
        raise DeserializationError("yaml", e, path) from e

    try:
        return model.model_validate(data or {})
    except ValidationError as e:
        raise DeserializationError("yaml", e, path) from e


def write_file(path: Path, model: BaseModel) -> None:
    data = model.model_dump(mode="json", by_alias=True, exclude_none=True)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(data, f, sort_keys=False)
    except OSError as e:
        raise IoError(e, path) from e


class CollectionStore:
    """Loads and creates definitions below one base directory."""

    def __init__(self, base_dir: Path):
        self.base_dir = Path(base_dir)

    # ── paths ──

    def collection_path(self, name: str) -> Path:
        return self.base_dir / name / COLLECTION_FILE

    def environment_path(self, collection: str, name: str) -> Path:
        return self.base_dir / collection / ENVIRONMENTS_DIR / f"{name}{EXT}"

    def request_path(self, collection: str, request_id: str) -> Path:
        return self.base_dir / collection / f"{request_id.replace(':', '/')}{EXT}"

    def _require_collection(self, name: str) -> Path:
        path = self.collection_path(name)
        if not path.exists():
            raise NotFoundError("collection", name)
        return path

    # ── loading ──

    def load_collection(self, name: str) -> CollectionModel:
        collection = read_file(self._require_collection(name), CollectionModel)
        logger.debug("Collection %s: %r", name, collection)
        return collection

    def load_environment(self, collection: str, name: str) -> EnvironmentModel:
        path = self.environment_path(collection, name)
        if not path.exists():
            raise NotFoundError("environment", name)
        environment = read_file(path, EnvironmentModel)
        logger.debug("Environment %s: %r", name, environment)
        return environment

    def load_request(self, collection: str, request_id: str) -> RequestModel:
        path = self.request_path(collection, request_id)
        if not path.exists():
            raise NotFoundError("request", request_id)
        request = read_file(path, RequestModel)
        logger.debug("Request %s: %r", request_id, request)
        return request

    # ── creating ──

    def create_collection(self, name: str) -> Path:
        path = self.collection_path(name)
        if path.exists():
            raise AlreadyExistsError("collection", name)
        write_file(path, CollectionModel())
        return path

    def create_environment(self, collection: str, name: str) -> Path:
        self._require_collection(collection)
        path = self.environment_path(collection, name)
        if path.exists():
            raise AlreadyExistsError("environment", name)
        write_file(path, EnvironmentModel())
        return path

    def create_request(self, collection: str, request_id: str) -> Path:
        self._require_collection(collection)
        path = self.request_path(collection, request_id)
        if path.exists():
            raise AlreadyExistsError("request", request_id)
        write_file(path, RequestModel())
        return path

    # ── listing ──

    def list_collections(self) -> list[str]:
        """Names of directories holding a collection.yaml, sorted.

        Creates the base directory if it does not exist yet.
        """
        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
            entries = list(self.base_dir.iterdir())
        except OSError as e:
            raise IoError(e, self.base_dir) from e
        return sorted(p.name for p in entries if p.is_dir() and (p / COLLECTION_FILE).exists())

    def list_environments(self, collection: str) -> list[str]:
        self._require_collection(collection)
        env_dir = self.base_dir / collection / ENVIRONMENTS_DIR
        if not env_dir.is_dir():
            return []
        return sorted(p.stem for p in env_dir.iterdir() if p.is_file() and p.suffix == EXT)

    def list_requests(self, collection: str) -> list[str]:
        """Request ids of a collection, folders joined with ':', sorted."""
        collection_dir = self._require_collection(collection).parent
        try:
            return sorted(self._find_requests(collection_dir, collection_dir))
        except OSError as e:
            raise IoError(e, collection_dir) from e

    def _find_requests(self, collection_dir: Path, directory: Path) -> list[str]:
        names: list[str] = []
        for path in directory.iterdir():
            if path.name in (COLLECTION_FILE, ENVIRONMENTS_DIR):
                continue
            if path.is_dir():
                names.extend(self._find_requests(collection_dir, path))
            elif path.suffix == EXT:
                relative = path.relative_to(collection_dir).with_suffix("")
                names.append(":".join(relative.parts))
        return names
