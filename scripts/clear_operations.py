# scripts/clear_operations.py
# Reset quản trị: xoá toàn bộ historique des contrôles (không đụng tới exigences / ordres).
# Chạy: python -m scripts.clear_operations --yes
import argparse
import logging

from qc_checklist.db.session import SessionLocal, engine, init_db
from qc_checklist.services.operation_log import OperationLog
from qc_checklist.services.store import KeyValueStore

def main(argv=None):
    parser = argparse.ArgumentParser(description="Vider l'historique des opérations.")
    parser.add_argument("--yes", action="store_true", help="confirmer la suppression")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)
    print("DB =", engine.url.render_as_string(hide_password=True))
    init_db()

    log = OperationLog(KeyValueStore(SessionLocal))
    print("Operations in store:", len(log))
    if not args.yes:
        print("Nothing done (add --yes to confirm).")
        return 1

    removed = log.clear()
    print(f"CLEARED {removed} operation(s)")
    return 0

if __name__ == "__main__":
    raise SystemExit(main())
