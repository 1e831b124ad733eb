import yaml, json, os, time, typing as t
from pathlib import Path
from .database import _describe_table_postgres

TABLES_PATH = Path(os.getenv("TABLES_FILE", "config/tables.yaml"))
CACHE_PATH = Path(os.getenv("COLUMNS_CACHE_FILE", "config/columns_cache.json"))
GLOBAL_MAX_PAGE_SIZE = int(os.getenv("GLOBAL_MAX_PAGE_SIZE", "1000"))

class TableMeta(t.TypedDict, total=False):
    table: str
    schema: str
    editable: bool
    maxPageSize: int

class TableEntry(t.TypedDict):
    table: str
    schema: str
    columns: dict[str, str]  # NAME -> TYPE_CATEGORY
    primaryKeys: list[str]
    editable: bool
    loadedAt: str
    maxPageSize: int

def _now() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())

class Registry:
    def __init__(self, tables_path: Path | None = None, cache_path: Path | None = None):
        self.tables_path = Path(tables_path) if tables_path else TABLES_PATH
        self.cache_path = Path(cache_path) if cache_path else CACHE_PATH
        self.tables_cfg: dict[str, TableMeta] = {}
        self.columns_cache: dict[str, TableEntry] = {}

    def load_tables(self) -> None:
        if not self.tables_path.exists():
            raise RuntimeError(f"Table mapping file not found: {self.tables_path}")
        with self.tables_path.open("r", encoding="utf-8") as f:
            if self.tables_path.suffix.lower() in (".yaml", ".yml"):
                cfg = yaml.safe_load(f) or {}
            else:
                cfg = json.load(f)
        tables = cfg.get("tables", {})
        norm: dict[str, TableMeta] = {}
        for k, v in tables.items():
            if v is None:
                v = {}
            if not isinstance(v, dict):
                raise RuntimeError(f"Bad table mapping for {k}: {v}")
            item: TableMeta = {
                "table": str(v.get("table", k)),
                "schema": str(v.get("schema", "public")),
                "editable": bool(v.get("editable", False)),
            }
            if "maxPageSize" in v:
                item["maxPageSize"] = int(v["maxPageSize"])
            norm[k] = item
        self.tables_cfg = norm

    def load_cache(self) -> None:
        if self.cache_path.exists():
            with self.cache_path.open("r", encoding="utf-8") as f:
                self.columns_cache = json.load(f)
        else:
            self.columns_cache = {}

    def save_cache(self) -> None:
        self.cache_path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.cache_path.with_suffix(".tmp")
        with tmp.open("w", encoding="utf-8") as f:
            json.dump(self.columns_cache, f, indent=2)
        tmp.replace(self.cache_path)

    def resolve(self, name: str, schema: str | None = None) -> str:
        """
        Map what the grid sent (a configured name, or a schema-qualified
        physical table) to the configured name.
        """
        if name in self.tables_cfg and (schema is None or schema == self.tables_cfg[name]["schema"]):
            return name
        for key, cfg in self.tables_cfg.items():
            if cfg["table"] == name and (schema is None or cfg["schema"] == schema):
                return key
        qualified = f"{schema}.{name}" if schema else name
        raise KeyError(f"Unknown table: {qualified}")

    def _describe(self, cfg: TableMeta) -> TableEntry:
        info = _describe_table_postgres(cfg["schema"], cfg["table"])
        pks = list(info["primaryKeys"])
        return {
            "table": cfg["table"],
            "schema": cfg["schema"],
            "columns": info["columns"],
            "primaryKeys": pks,
            # Rows can only be addressed for edit/delete through a primary key.
            "editable": bool(cfg.get("editable", False)) and bool(pks),
            "loadedAt": _now(),
            "maxPageSize": int(cfg.get("maxPageSize", GLOBAL_MAX_PAGE_SIZE)),
        }

    def ensure_table(self, name: str) -> TableEntry:
        if name not in self.tables_cfg:
            raise KeyError(f"Unknown table: {name}")
        cfg = self.tables_cfg[name]
        cached = self.columns_cache.get(name)
        if cached and cached.get("table") == cfg["table"] and cached.get("schema") == cfg["schema"]:
            cached["editable"] = bool(cfg.get("editable", False)) and bool(cached.get("primaryKeys"))
            return cached
        entry = self._describe(cfg)
        self.columns_cache[name] = entry
        self.save_cache()
        return entry

    def refresh_all(self) -> dict[str, str]:
        """Re-read tables file and re-describe all tables."""
        self.load_tables()
        summaries: dict[str, str] = {}
        for name, cfg in self.tables_cfg.items():
            try:
                entry = self._describe(cfg)
                self.columns_cache[name] = entry
                summaries[name] = f"ok ({len(entry['columns'])} cols)"
            except Exception as e:
                summaries[name] = f"error: {e}"
        self.save_cache()
        return summaries
