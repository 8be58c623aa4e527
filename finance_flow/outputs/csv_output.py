# finance_flow/outputs/csv_output.py

import os
import csv
from datetime import date
from finance_flow.outputs.base import BaseOutput


class CSVOutput(BaseOutput):
    """
    Writes transactions to finance_flow_<today>.csv in the output directory,
    sorted by date (oldest to latest), with the account name resolved.
    """
    def __init__(self, config):
        self.config     = config
        self.output_dir = config.get('output_dir', 'data')
        os.makedirs(self.output_dir, exist_ok=True)

    def write(self, transactions, accounts=None, templates=None, today=None):
        names = {acc.id: acc.name for acc in accounts or []}
        rows = sorted(transactions, key=lambda tx: tx.date)

        filename = f"finance_flow_{(today or date.today()).isoformat()}.csv"
        out_path = os.path.join(self.output_dir, filename)

        with open(out_path, 'w', newline='', encoding='utf-8') as f:
            writer = csv.writer(f)
            writer.writerow(['date', 'description', 'category', 'sub_category', 'type', 'amount', 'account'])
            for tx in rows:
                writer.writerow([
                    tx.date.date().isoformat(),
                    tx.description.strip(),
                    tx.category,
                    tx.sub_category or '',
                    tx.type.value,
                    f"{tx.amount:.2f}",
                    names.get(tx.account_id, tx.account_id),
                ])
        return out_path
