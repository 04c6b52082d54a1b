import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from sqlalchemy import text
from fanclub.db import engine, dialect
from fanclub.data.schema import TABLES


def _table_exists(conn, name: str) -> bool:
    if dialect() == 'postgresql':
        return bool(conn.execute(text("SELECT to_regclass(:t)"), {"t": f"public.{name}"}).scalar())
    return bool(
        conn.execute(
            text("SELECT name FROM sqlite_master WHERE type='table' AND name=:t"), {"t": name}
        ).scalar()
    )


def main() -> int:
    print('dialect:', dialect())
    print('url:', engine.url.render_as_string(hide_password=True))
    ok = True
    with engine.begin() as conn:
        try:
            conn.execute(text('SELECT 1'))
            print('db: ok')
        except Exception as e:
            print('db error:', e)
            return 1
        for name in TABLES:
            try:
                exists = _table_exists(conn, name)
                rows = conn.execute(text(f"SELECT COUNT(*) FROM {name}")).scalar() if exists else None
                print(f'{name} table:', exists, f'rows={rows}' if exists else '')
                ok = ok and exists
            except Exception as e:
                print(f'{name} introspection error:', e)
                ok = False
    return 0 if ok else 1


if __name__ == '__main__':
    raise SystemExit(main())
