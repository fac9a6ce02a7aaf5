from pathlib import Path

class LocalStorage:
    """
    Read side of the local uploads folder. Content bytes are written by the
    upload collaborator; delivery only resolves stored paths.
    """

    def __init__(self, base_dir: Path):
        self.base_dir = Path(base_dir)

    def resolve(self, content_path: str) -> Path:
        base = self.base_dir.resolve()
        path = (base / content_path).resolve()
        # Stored paths must not escape the uploads folder
        if base != path and base not in path.parents:
            raise FileNotFoundError(content_path)
        if not path.is_file():
            raise FileNotFoundError(content_path)
        return path

    def read_text(self, content_path: str) -> str:
        return self.resolve(content_path).read_text(encoding="utf-8")
