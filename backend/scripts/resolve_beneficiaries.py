"""
MIZAN: Batch Beneficiary Resolution Script

Clusters duplicate beneficiaries and audits an exported register:
1. Reads a CSV or Excel sheet and maps its columns
2. Builds duplicate clusters with confidence and decision labels
3. Runs the audit rules over every record
4. Writes clusters and findings as JSON (and optionally a flat CSV sheet)

Usage:
    python -m scripts.resolve_beneficiaries register.xlsx \\
        --woman-name "اسم المستفيدة" --husband-name "اسم الزوج" \\
        --national-id "رقم الهوية" --phone "رقم الهاتف" \\
        [--village "القرية"] [--children "الأطفال"] [--rules rules.json] \\
        [--output results.json] [--clusters-csv clusters.csv]
"""

import argparse
import json
import sys
from collections import Counter
from pathlib import Path

import pandas as pd
import structlog

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from api.middleware.structlog_config import configure as configure_logging
from api.services.rule_store import RuleStore
from mizan.audit import AuditEngine, summarize
from mizan.blocking import validate_blocking_keys
from mizan.clustering import ClusterBuilder
from mizan.config import ResolutionConfig
from mizan.confidence import ARABIC_LABELS, DecisionLabel
from mizan.errors import MizanError
from mizan.models import AuditFinding, Cluster
from mizan.preprocess import FieldMapping, build_raw_records
from mizan.rules import RuleSet

logger = structlog.get_logger("mizan.cli")


def load_rows(path: Path, sheet: str | None = None) -> list[dict]:
    """Read every cell as text so national ids keep their leading zeros."""
    if path.suffix.lower() in ('.xlsx', '.xls'):
        df = pd.read_excel(path, sheet_name=sheet or 0, dtype=str, keep_default_na=False)
    else:
        df = pd.read_csv(path, dtype=str, keep_default_na=False, encoding='utf-8-sig')
    df.columns = [str(column).strip() for column in df.columns]
    return df.to_dict(orient='records')


def clusters_frame(clusters: list[Cluster]) -> pd.DataFrame:
    """One row per clustered record, the layout reviewers sort in Excel."""
    rows = []
    for cluster in clusters:
        label = DecisionLabel(cluster.decision)
        for record in cluster.records:
            rows.append({
                'cluster_id': cluster.cluster_id,
                'record_id': record.internal_id,
                'cluster_size': len(cluster.records),
                'confidence': cluster.confidence,
                'decision': label.value,
                'decision_ar': ARABIC_LABELS[label],
                'reasons': ', '.join(cluster.reasons),
                'summary_ar': ' '.join(cluster.summary),
                **record.values,
            })
    return pd.DataFrame(rows)


def resolve(
    rows: list[dict],
    mapping: FieldMapping,
    config: ResolutionConfig,
    rules_path: Path | None = None,
    id_column: str | None = None,
    blocking_keys: list[str] | None = None,
    skip_audit: bool = False,
) -> tuple[list[Cluster], list[AuditFinding]]:
    """
    Cluster and audit one register.

    Raises:
        MissingFieldMappingError: if a required column is not mapped
        InvalidBlockingKeyError: if a blocking key name is unknown
    """
    validate_blocking_keys(blocking_keys or ())
    records = build_raw_records(rows, id_column=id_column)
    if rules_path:
        rule_set = RuleStore(rules_path, config).rule_set()
    else:
        rule_set = RuleSet.default(config)

    clusters = ClusterBuilder(config).build(records, rule_set, mapping, blocking_keys)
    findings = [] if skip_audit else AuditEngine(config).run(records, mapping, rule_set, blocking_keys)
    return clusters, findings


def build_report(clusters: list[Cluster], findings: list[AuditFinding], record_count: int) -> dict:
    """JSON document written by the CLI."""
    return {
        'summary': {
            'records': record_count,
            'clusters': len(clusters),
            'records_in_clusters': sum(len(c.records) for c in clusters),
            'by_decision': dict(Counter(c.decision for c in clusters)),
            'audit': summarize(findings),
        },
        'clusters': [cluster.to_dict() for cluster in clusters],
        'findings': [finding.to_dict() for finding in findings],
    }


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Cluster duplicate beneficiaries and audit a register",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Cluster and audit, results to stdout
  python -m scripts.resolve_beneficiaries register.csv --woman-name name \\
      --husband-name husband --national-id nid --phone phone

  # Stricter aggregate threshold, village blocking, Excel review sheet
  python -m scripts.resolve_beneficiaries register.xlsx ... --threshold 0.9 \\
      --blocking-key village --clusters-csv review.csv
        """
    )
    parser.add_argument('input', type=Path, help='CSV or Excel file')
    parser.add_argument('--sheet', help='Excel sheet name (default: first sheet)')

    mapping = parser.add_argument_group('column mapping')
    mapping.add_argument('--woman-name', required=True, help="Column with the woman's full name")
    mapping.add_argument('--husband-name', required=True, help="Column with the husband's full name")
    mapping.add_argument('--national-id', required=True, help='Column with the national ID')
    mapping.add_argument('--phone', required=True, help='Column with the phone number')
    mapping.add_argument('--village', help='Column with the village')
    mapping.add_argument('--subdistrict', help='Column with the subdistrict')
    mapping.add_argument('--children', help='Column with children names (comma separated)')
    mapping.add_argument('--beneficiary-id', help='Column with the program beneficiary id')
    mapping.add_argument('--id-column', help='Column used as record id (default: R1, R2, ...)')

    parser.add_argument('--rules', type=Path, help='Learned rules JSON file')
    parser.add_argument('--threshold', type=float, help='Aggregate match threshold (default: 0.80)')
    parser.add_argument('--blocking-key', action='append', default=[],
                        help='Blocking strategy for large files (repeatable)')
    parser.add_argument('--skip-audit', action='store_true', help='Only build clusters')
    parser.add_argument('--output', type=Path, help='JSON output path (default: stdout)')
    parser.add_argument('--clusters-csv', type=Path, help='Also write a flat cluster sheet')
    parser.add_argument('--log-level', default='INFO', help='Log level (default: INFO)')
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level, stream=sys.stderr)

    config = ResolutionConfig.from_env()
    if args.threshold is not None:
        config.match_threshold = args.threshold

    mapping = FieldMapping(
        woman_name=args.woman_name,
        husband_name=args.husband_name,
        national_id=args.national_id,
        phone=args.phone,
        village=args.village,
        subdistrict=args.subdistrict,
        children=args.children,
        beneficiary_id=args.beneficiary_id,
    )

    rows = load_rows(args.input, args.sheet)
    logger.info("register_loaded", path=str(args.input), rows=len(rows))

    try:
        clusters, findings = resolve(
            rows, mapping, config,
            rules_path=args.rules,
            id_column=args.id_column,
            blocking_keys=args.blocking_key or None,
            skip_audit=args.skip_audit,
        )
    except MizanError as e:
        logger.error("resolution_failed", error_code=e.error_code, error=e.message)
        print(f"Error: {e.message}", file=sys.stderr)
        return 2

    report = build_report(clusters, findings, len(rows))
    text = json.dumps(report, ensure_ascii=False, indent=2)
    if args.output:
        args.output.write_text(text, encoding='utf-8')
    else:
        print(text)

    if args.clusters_csv:
        clusters_frame(clusters).to_csv(args.clusters_csv, index=False, encoding='utf-8-sig')

    logger.info("resolution_completed", clusters=len(clusters), findings=len(findings))
    return 0


if __name__ == '__main__':
    sys.exit(main())
