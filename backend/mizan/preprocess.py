"""
Record preparation: field mapping and normalization.

Uploaded rows are column-mapped by the user. The mapping names which
source column holds each logical field; a run cannot proceed without
the identity fields because the audit rules key on them.
"""

from dataclasses import asdict, dataclass
from typing import Any, Iterable, Mapping

import structlog

from .errors import MissingFieldMappingError
from .models import PreprocessedRecord, RawRecord
from .normalizer import ArabicNormalizer, coerce_text

logger = structlog.get_logger("mizan.preprocess")

REQUIRED_FIELDS = ('woman_name', 'husband_name', 'national_id', 'phone')

# Field names used by the upload screen
_CAMEL_CASE = {
    'womanName': 'woman_name',
    'husbandName': 'husband_name',
    'nationalId': 'national_id',
    'beneficiaryId': 'beneficiary_id',
}


@dataclass(frozen=True)
class FieldMapping:
    """Logical field to source column name."""
    woman_name: str | None = None
    husband_name: str | None = None
    national_id: str | None = None
    phone: str | None = None
    village: str | None = None
    subdistrict: str | None = None
    children: str | None = None
    beneficiary_id: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> 'FieldMapping':
        """Build from a dict, accepting snake_case or upload-screen camelCase keys."""
        if not data:
            return cls()
        known = set(cls.__dataclass_fields__)
        values = {}
        for key, column in data.items():
            name = _CAMEL_CASE.get(key, key)
            if name in known and column:
                values[name] = str(column)
        return cls(**values)

    def to_dict(self) -> dict:
        return asdict(self)

    def missing_fields(self, columns: Iterable[str] | None = None) -> list[str]:
        """Required fields with no column, or mapped to a column the data lacks."""
        available = set(columns) if columns is not None else None
        missing = []
        for name in REQUIRED_FIELDS:
            column = getattr(self, name)
            if not column or (available is not None and column not in available):
                missing.append(name)
        return missing

    def validate(self, records: list[RawRecord]) -> None:
        """
        Check the mapping against the records about to be processed.

        Raises:
            MissingFieldMappingError: if any required field is unmapped
        """
        columns = None
        if records:
            columns = set()
            for record in records:
                columns.update(record.values)
        missing = self.missing_fields(columns)
        if missing:
            raise MissingFieldMappingError(
                f"No column mapped for required field(s): {', '.join(missing)}",
                details={'missing_fields': missing},
            )


def build_raw_records(
    rows: Iterable[Mapping[str, Any]],
    id_column: str | None = None,
) -> list[RawRecord]:
    """
    Wrap uploaded rows as RawRecords.

    Ids come from `id_column` when given and present, else R1, R2, ... in
    upload order. Duplicate supplied ids get a positional suffix so ids
    stay unique within the session.
    """
    records = []
    seen: set[str] = set()
    for index, row in enumerate(rows, start=1):
        internal_id = coerce_text(row.get(id_column)).strip() if id_column else ''
        if not internal_id:
            internal_id = f'R{index}'
        if internal_id in seen:
            internal_id = f'{internal_id}#{index}'
        seen.add(internal_id)
        values = {key: value for key, value in row.items() if key != '_internalId'}
        records.append(RawRecord(internal_id=internal_id, values=values))
    return records


class RecordPreprocessor:
    """Derive PreprocessedRecords from RawRecords under one mapping."""

    def __init__(self, mapping: FieldMapping, normalizer: ArabicNormalizer | None = None):
        self.mapping = mapping
        self.normalizer = normalizer or ArabicNormalizer()

    def preprocess(self, record: RawRecord) -> PreprocessedRecord:
        """Normalize one record. Missing cells become empty fields."""
        n = self.normalizer
        m = self.mapping

        woman = n.normalize(record.get(m.woman_name))
        husband = n.normalize(record.get(m.husband_name))

        return PreprocessedRecord(
            internal_id=record.internal_id,
            name_parts=tuple(n.split_lineage(woman)),
            husband_name_parts=tuple(n.split_lineage(husband)),
            woman_name=woman,
            husband_name=husband,
            phone_digits=n.phone_digits(record.get(m.phone)),
            children=n.children_tokens(record.get(m.children)),
            national_id=n.identifier(record.get(m.national_id)),
            village=n.normalize(record.get(m.village)),
            subdistrict=n.normalize(record.get(m.subdistrict)),
            beneficiary_id=n.identifier(record.get(m.beneficiary_id)),
        )

    def preprocess_all(self, records: list[RawRecord]) -> list[PreprocessedRecord]:
        """
        Validate the mapping, then normalize every record.

        Raises:
            MissingFieldMappingError: if a required field is unmapped
        """
        self.mapping.validate(records)
        prepared = [self.preprocess(record) for record in records]
        logger.debug("records_preprocessed", count=len(prepared))
        return prepared
