"""
OFX / QFX statement parsing.

OFX 1.x is SGML: leaf tags are often never closed and everything may sit on
one line. Rather than repairing it into XML, we split it to one tag per line
and read each <STMTTRN> block with a regex.
"""

import re
from datetime import datetime

from financepro.imports.common import (
    StatementImportError,
    StatementParseResult,
    StatementRow,
    parse_amount,
)


TAG_PATTERN = re.compile(r"^<([A-Za-z0-9_.]+)>([^<]*)")


def parse_ofx_statement(text: str) -> StatementParseResult:
    """
    Extract the transactions of an OFX statement.

    Blocks without a readable date or amount are skipped and counted.

    Raises:
        StatementImportError: If the text is not an OFX document
    """
    if "<OFX>" not in text.upper():
        raise StatementImportError("Arquivo OFX inválido: marcador <OFX> não encontrado")

    lines = re.sub(r"\s*<", "\n<", text).splitlines()
    result = StatementParseResult(source="ofx")
    block = None

    for raw_line in lines:
        line = raw_line.strip()
        upper = line.upper()

        if upper.startswith("<STMTTRN>"):
            block = {}
            continue
        if upper.startswith("</STMTTRN>"):
            if block is not None:
                row = _block_to_row(block)
                if row is None:
                    result.skipped += 1
                else:
                    result.rows.append(row)
            block = None
            continue
        if block is None:
            continue

        match = TAG_PATTERN.match(line)
        if match:
            block[match.group(1).upper()] = match.group(2).strip()

    return result


def _block_to_row(block: dict[str, str]):
    try:
        posted = datetime.strptime(block.get("DTPOSTED", "")[:8], "%Y%m%d").date()
    except ValueError:
        return None

    amount = parse_amount(block.get("TRNAMT"))
    if amount is None:
        return None

    description = block.get("MEMO") or block.get("NAME") or "Sem descrição"
    return StatementRow(
        date=posted,
        description=description[:200],
        amount=amount,
        external_id=block.get("FITID") or None,
    )
