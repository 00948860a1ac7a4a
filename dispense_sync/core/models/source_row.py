"""
SourceRow model: a typed, read-only view of one row of the dispense table.
"""

from typing import Any

from pydantic import BaseModel, field_validator


class SourceRow(BaseModel):
    """
    One row selected from the dispense middle table.

    Populated once during extraction. Every column is kept as the raw text the
    store returned (or None); interpretation belongs to the field mapper.
    The field names double as the selection column list.
    """

    f_referencecode: str | None = None
    f_prescriptionnohis: str | None = None
    f_seq: str | None = None
    f_seqmax: str | None = None
    f_prescriptiondate: str | None = None
    f_ordercreatedate: str | None = None
    f_ordercreatetime: str | None = None
    f_ordertargetdate: str | None = None
    f_ordertargettime: str | None = None
    f_doctorcode: str | None = None
    f_doctorname: str | None = None
    f_useracceptby: str | None = None
    f_orderacceptdate: str | None = None
    f_orderaccepttime: str | None = None
    f_orderacceptfromip: str | None = None
    f_pharmacylocationpackcode: str | None = None
    f_pharmacylocationpackdesc: str | None = None
    f_prioritycode: str | None = None
    f_prioritydesc: str | None = None
    f_hn: str | None = None
    f_en: str | None = None
    f_patientname: str | None = None
    f_sex: str | None = None
    f_patientdob: str | None = None
    f_wardcode: str | None = None
    f_warddesc: str | None = None
    f_roomcode: str | None = None
    f_roomdesc: str | None = None
    f_bedcode: str | None = None
    f_freetext4: str | None = None
    f_orderitemname: str | None = None
    f_orderitemnameth: str | None = None
    f_orderitemgenericname: str | None = None
    f_orderqty: str | None = None
    f_orderunitcode: str | None = None
    f_orderunitdesc: str | None = None
    f_dosage: str | None = None
    f_dosageunit: str | None = None
    f_heighalertdrug: str | None = None
    f_narcoticdrug: str | None = None
    f_psyhotropicdrug: str | None = None
    f_itemlotcode: str | None = None
    f_itemlotexpire: str | None = None
    f_instructioncode: str | None = None
    f_instructiondesc: str | None = None
    f_frequencycode: str | None = None
    f_frequencydesc: str | None = None
    f_frequencytime: str | None = None
    f_dosagedispense: str | None = None
    f_noteprocessing: str | None = None
    f_prn: str | None = None
    f_comment: str | None = None
    f_tomachineno: str | None = None
    f_ipdpt_recode_no: str | None = None
    f_status: str | None = None
    f_freetext2: str | None = None
    f_dispensestatus_conhis: str | None = None
    f_lastmodified: str | None = None

    class Config:
        frozen = True
        extra = "ignore"

    @field_validator("*", mode="before")
    @classmethod
    def coerce_to_text(cls, value: Any) -> str | None:
        """Store drivers return ints, dates and bytes; keep everything as text."""
        if value is None:
            return None
        if isinstance(value, (bytes, bytearray, memoryview)):
            return bytes(value).decode("utf-8", errors="replace")
        if hasattr(value, "isoformat"):
            return value.isoformat()
        return str(value)

    @classmethod
    def column_names(cls) -> list[str]:
        """Columns selected from the store, in declaration order."""
        return list(cls.model_fields)
