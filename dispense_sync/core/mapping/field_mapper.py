"""
Field mapper: SourceRow -> MappingResult.

Pure transform. Any failure is returned as a tagged MappingResult so that a
bad row never aborts extraction.
"""

from typing import Any

from pydantic import ValidationError

from dispense_sync.core.errors import MappingError
from dispense_sync.core.models import BatchKey, DispenseRecord, MappingResult, SourceRow

from .normalizers import (
    CARRIER_DELIMITER,
    PRN_FLAG,
    STAT_FLAG,
    clean_text,
    combine_date_time,
    date_prefix,
    decode_flag,
    decode_sex,
    parse_float,
    parse_int,
    split_carrier,
)

# Output field -> source column, copied as trimmed text
DIRECT_FIELDS: dict[str, str] = {
    "f_referenceCode": "f_referencecode",
    "f_prescriptionnohis": "f_prescriptionnohis",
    "f_ordertargetdate": "f_ordertargetdate",
    "f_ordertargettime": "f_ordertargettime",
    "f_doctorcode": "f_doctorcode",
    "f_doctorname": "f_doctorname",
    "f_useracceptby": "f_useracceptby",
    "f_orderacceptfromip": "f_orderacceptfromip",
    "f_pharmacylocationcode": "f_pharmacylocationpackcode",
    "f_pharmacylocationdesc": "f_pharmacylocationpackdesc",
    "f_prioritycode": "f_prioritycode",
    "f_prioritydesc": "f_prioritydesc",
    "f_hn": "f_hn",
    "f_an": "f_en",
    "f_patientname": "f_patientname",
    "f_patientdob": "f_patientdob",
    "f_wardcode": "f_wardcode",
    "f_warddesc": "f_warddesc",
    "f_roomcode": "f_roomcode",
    "f_roomdesc": "f_roomdesc",
    "f_bedcode": "f_bedcode",
    "f_beddesc": "f_bedcode",
    "f_drugallergy": "f_freetext4",
    "f_orderitemname": "f_orderitemname",
    "f_orderitemnameTH": "f_orderitemnameth",
    "f_orderitemnamegeneric": "f_orderitemgenericname",
    "f_orderunitcode": "f_orderunitcode",
    "f_orderunitdesc": "f_orderunitdesc",
    "f_dosageunit": "f_dosageunit",
    "f_HAD": "f_heighalertdrug",
    "f_narcoticFlg": "f_narcoticdrug",
    "f_psychotropic": "f_psyhotropicdrug",
    "f_itemlotno": "f_itemlotcode",
    "f_itemlotexpire": "f_itemlotexpire",
    "f_instructioncode": "f_instructioncode",
    "f_instructiondesc": "f_instructiondesc",
    "f_frequencycode": "f_frequencycode",
    "f_frequencydesc": "f_frequencydesc",
    "f_frequencytime": "f_frequencytime",
    "f_dosagedispense": "f_dosagedispense",
    "f_noteprocessing": "f_noteprocessing",
    "f_comment": "f_comment",
    "f_tomachineno": "f_tomachineno",
    "f_ipd_order_recordno": "f_ipdpt_recode_no",
    "f_status": "f_status",
}

INT_FIELDS: dict[str, str] = {
    "f_seq": "f_seq",
    "f_seqmax": "f_seqmax",
}

FLOAT_FIELDS: dict[str, str] = {
    "f_orderqty": "f_orderqty",
    "f_dosage": "f_dosage",
}

# Output field -> (date column, time column)
DATE_TIME_PAIRS: dict[str, tuple[str, str]] = {
    "f_ordercreatedate": ("f_ordercreatedate", "f_ordercreatetime"),
    "f_orderacceptdate": ("f_orderacceptdate", "f_orderaccepttime"),
}

# Carrier column -> output field per position (None = position unused)
CARRIER_FIELDS: dict[str, tuple[str | None, ...]] = {
    "f_freetext2": ("f_orderitemcode", "f_binlocation", None, "f_remark"),
}


class FieldMapper:
    """
    Maps one SourceRow to one DispenseRecord.

    Rules:
    - null / empty / whitespace-only values become None
    - date+time column pairs are joined; no date means no value
    - carrier fields are split on the delimiter into positional fields
    - sex and PRN/STAT codes are decoded
    - numbers fall back to None when they do not parse
    - a row without prescription number or prescription date fails
    """

    def __init__(self, carrier_delimiter: str = CARRIER_DELIMITER):
        """
        Initialize field mapper.

        Args:
            carrier_delimiter: Separator used inside carrier fields
        """
        self.carrier_delimiter = carrier_delimiter

    def map_row(self, row: SourceRow) -> MappingResult:
        """
        Map a source row.

        Args:
            row: Row as read from the store

        Returns:
            MappingResult holding either the record and its key, or the error
            and whatever key could still be derived
        """
        key = self.derive_key(row)
        try:
            record = self._build_record(row)
        except MappingError as e:
            return MappingResult.failure(str(e), key=key, field_name=e.field_name)
        except ValidationError as e:
            errors = e.errors()
            field_name = str(errors[0]["loc"][0]) if errors and errors[0].get("loc") else None
            return MappingResult.failure(
                f"Invalid record: {errors[0]['msg'] if errors else e}",
                key=key,
                field_name=field_name,
            )
        except (TypeError, ValueError, AttributeError) as e:
            return MappingResult.failure(f"Unexpected mapping error: {e}", key=key)

        return MappingResult.success(record, key)

    def derive_key(self, row: SourceRow) -> BatchKey | None:
        """Reconciliation key, or None when identifier or date is missing."""
        identifier = clean_text(row.f_prescriptionnohis)
        record_date = date_prefix(row.f_prescriptiondate)
        if identifier is None or record_date is None:
            return None
        return BatchKey(record_identifier=identifier, record_date=record_date)

    def _build_record(self, row: SourceRow) -> DispenseRecord:
        identifier = clean_text(row.f_prescriptionnohis)
        if identifier is None:
            raise MappingError("Missing prescription number", field_name="f_prescriptionno")

        record_date = date_prefix(row.f_prescriptiondate)
        if record_date is None:
            raise MappingError("Missing prescription date", field_name="f_prescriptiondate")

        values: dict[str, Any] = {
            "f_prescriptionno": identifier,
            "f_prescriptiondate": record_date,
        }

        for output_field, column in DIRECT_FIELDS.items():
            values[output_field] = clean_text(getattr(row, column))

        for output_field, column in INT_FIELDS.items():
            values[output_field] = parse_int(getattr(row, column))

        for output_field, column in FLOAT_FIELDS.items():
            values[output_field] = parse_float(getattr(row, column))

        for output_field, (date_column, time_column) in DATE_TIME_PAIRS.items():
            values[output_field] = combine_date_time(
                getattr(row, date_column), getattr(row, time_column)
            )

        for column, output_fields in CARRIER_FIELDS.items():
            parts = split_carrier(getattr(row, column), len(output_fields), self.carrier_delimiter)
            for output_field, part in zip(output_fields, parts):
                if output_field is not None:
                    values[output_field] = part

        values["f_sex"] = decode_sex(row.f_sex)
        values["f_prn"] = decode_flag(row.f_prn, PRN_FLAG)
        values["f_stat"] = decode_flag(row.f_prn, STAT_FLAG)

        return DispenseRecord(**values)


_default_mapper = FieldMapper()


def map_row(row: SourceRow) -> MappingResult:
    """Map a row with the default mapper."""
    return _default_mapper.map_row(row)
