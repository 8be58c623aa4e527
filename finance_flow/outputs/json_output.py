# finance_flow/outputs/json_output.py

import os
import json
from datetime import date
from finance_flow.outputs.base import BaseOutput


class JSONOutput(BaseOutput):
    """
    Full backup document: accounts, transactions and templates in the
    record format the JSON store reads back.
    """
    def __init__(self, config):
        self.config     = config
        self.output_dir = config.get('output_dir', 'data')
        os.makedirs(self.output_dir, exist_ok=True)

    def write(self, transactions, accounts=None, templates=None, today=None):
        payload = {
            'accounts':     [a.to_dict() for a in accounts or []],
            'transactions': [t.to_dict() for t in transactions],
            'templates':    [t.to_dict() for t in templates or []],
        }
        filename = f"finance_flow_backup_{(today or date.today()).isoformat()}.json"
        out_path = os.path.join(self.output_dir, filename)
        with open(out_path, 'w', encoding='utf-8') as f:
            json.dump(payload, f, indent=2, ensure_ascii=False)
        return out_path
