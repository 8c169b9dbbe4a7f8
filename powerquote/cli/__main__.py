# powerquote/cli/__main__.py
import sys, json
from pathlib import Path

from sqlmodel import Session

from powerquote.core.errors import ServiceError
from powerquote.core.part_numbers import build_chassis_part_number, generate_legacy_part_number
from powerquote.core.roles import MASTER, RequestContext
from powerquote.logging_config import setup_logging
from powerquote.server.db.session import engine, init_db
from powerquote.services.catalog_seed import load_catalog, seed_catalog
from powerquote.services.product_service import export_products, import_products, read_product_frame

USAGE = """Usage:
  python -m powerquote.cli part-number <config.json> [--legacy]
  python -m powerquote.cli import-products <products.csv|products.xlsx>
  python -m powerquote.cli export-products [--out=products.csv]
  python -m powerquote.cli seed [catalog.yaml]

Examples:
  python -m powerquote.cli part-number examples/ltx_rack.json
  python -m powerquote.cli import-products catalog/products.xlsx
  python -m powerquote.cli seed powerquote/knowledge/catalog/powerquote_catalog.yaml
"""

CLI_CONTEXT = RequestContext(user_id="cli", role=MASTER, email="cli@localhost", full_name="Command line")


def _load_json(p: str):
    try:
        return json.loads(Path(p).read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        print(f"Error reading JSON '{p}': {e}", file=sys.stderr)
        sys.exit(2)


def part_number(config: dict, legacy: bool = False) -> str:
    """
    config: {"chassis": {...}, "slot_assignments": {"1": {...card}},
             "has_remote_display": bool, "pn_config": {...},
             "code_map": {card_id: {...}}, "card_configurations": {...}}
    """
    slots = {int(k): v for k, v in (config.get("slot_assignments") or {}).items()}
    if legacy:
        return generate_legacy_part_number(
            config.get("chassis") or {},
            slots,
            has_remote_display=bool(config.get("has_remote_display")),
            analog_configurations=config.get("analog_configurations"),
            bushing_configurations=config.get("bushing_configurations"),
        )
    return build_chassis_part_number(
        config.get("chassis") or {},
        slots,
        has_remote_display=bool(config.get("has_remote_display")),
        pn_config=config.get("pn_config"),
        code_map=config.get("code_map"),
        card_configurations=config.get("card_configurations"),
    )


def main():
    if len(sys.argv) < 2:
        print(USAGE, file=sys.stderr); sys.exit(1)

    cmd = sys.argv[1].lower()
    args = [a for a in sys.argv[2:] if not a.startswith("--")]
    flags = [a for a in sys.argv[2:] if a.startswith("--")]

    setup_logging(log_dir="")

    if cmd == "part-number":
        if not args:
            print(USAGE, file=sys.stderr); sys.exit(1)
        print(part_number(_load_json(args[0]), legacy="--legacy" in flags))
        return

    if cmd == "seed":
        init_db()
        with Session(engine) as session:
            counts = seed_catalog(session, load_catalog(args[0] if args else None))
        print(json.dumps(counts, indent=2))
        return

    if cmd == "import-products":
        if not args:
            print(USAGE, file=sys.stderr); sys.exit(1)
        init_db()
        try:
            frame = read_product_frame(args[0])
            with Session(engine) as session:
                result = import_products(session, CLI_CONTEXT, frame)
        except ServiceError as e:
            print(f"Import failed: {e.message}", file=sys.stderr)
            sys.exit(2)
        print(json.dumps(result, indent=2))
        if result["errors"]:
            sys.exit(3)
        return

    if cmd == "export-products":
        out_path = "products.csv"
        for flag in flags:
            if flag.startswith("--out="):
                out_path = flag.split("=", 1)[1]
        init_db()
        with Session(engine) as session:
            export_products(session).to_csv(out_path, index=False)
        print(out_path)
        return

    print(USAGE, file=sys.stderr); sys.exit(1)

if __name__ == "__main__":
    main()
