# qc_checklist/services/ids.py
import uuid

def create_id() -> str:
    return str(uuid.uuid4())
