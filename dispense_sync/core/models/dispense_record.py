"""
DispenseRecord model: the normalized record sent downstream.
"""

from typing import Any

from pydantic import BaseModel, Field, field_validator


class DispenseRecord(BaseModel):
    """
    One normalized dispense line, serialized field-for-field into the payload.

    Textual fields are either a trimmed non-empty string or None. This is
    enforced for every field by ``blank_to_none`` rather than per field.

    Attributes (grouped):
        identifiers: f_referenceCode, f_prescriptionno, f_prescriptionnohis,
            f_seq, f_seqmax, f_ipd_order_recordno
        dates: f_prescriptiondate, f_ordercreatedate, f_ordertargetdate,
            f_ordertargettime, f_orderacceptdate
        patient: f_hn, f_an, f_vn, f_title, f_patientname, f_sex, f_patientdob,
            f_right, f_drugallergy, f_diagnosis
        location: ward, room, bed, pharmacy location
        drug/order: item codes and names, quantities, dosage, lot, flags
        free text: f_noteprocessing, f_comment, f_remark
    """

    f_referenceCode: str | None = None
    f_prescriptionno: str = Field(..., min_length=1)
    f_prescriptionnohis: str | None = None
    f_seq: int | None = None
    f_seqmax: int | None = None
    f_prescriptiondate: str = Field(..., min_length=1)
    f_ordercreatedate: str | None = None
    f_ordertargetdate: str | None = None
    f_ordertargettime: str | None = None
    f_doctorcode: str | None = None
    f_doctorname: str | None = None
    f_useracceptby: str | None = None
    f_orderacceptdate: str | None = None
    f_orderacceptfromip: str | None = None
    f_pharmacylocationcode: str | None = None
    f_pharmacylocationdesc: str | None = None
    f_prioritycode: str | None = None
    f_prioritydesc: str | None = None
    f_hn: str | None = None
    f_an: str | None = None
    f_vn: str | None = None
    f_title: str | None = None
    f_patientname: str | None = None
    f_sex: str = "U"
    f_patientdob: str | None = None
    f_wardcode: str | None = None
    f_warddesc: str | None = None
    f_roomcode: str | None = None
    f_roomdesc: str | None = None
    f_bedcode: str | None = None
    f_beddesc: str | None = None
    f_right: str | None = None
    f_drugallergy: str | None = None
    f_diagnosis: str | None = None
    f_orderitemcode: str | None = None
    f_orderitemname: str | None = None
    f_orderitemnameTH: str | None = None
    f_orderitemnamegeneric: str | None = None
    f_orderqty: float | None = None
    f_orderunitcode: str | None = None
    f_orderunitdesc: str | None = None
    f_dosage: float | None = None
    f_dosageunit: str | None = None
    f_dosagetext: str | None = None
    f_drugformcode: str | None = None
    f_drugformdesc: str | None = None
    f_HAD: str | None = None
    f_narcoticFlg: str | None = None
    f_psychotropic: str | None = None
    f_binlocation: str | None = None
    f_itemidentify: str | None = None
    f_itemlotno: str | None = None
    f_itemlotexpire: str | None = None
    f_instructioncode: str | None = None
    f_instructiondesc: str | None = None
    f_frequencycode: str | None = None
    f_frequencydesc: str | None = None
    f_timecode: str | None = None
    f_timedesc: str | None = None
    f_frequencytime: str | None = None
    f_dosagedispense: str | None = None
    f_dayofweek: str | None = None
    f_noteprocessing: str | None = None
    f_prn: str = "0"
    f_stat: str = "0"
    f_comment: str | None = None
    f_tomachineno: str | None = None
    f_ipd_order_recordno: str | None = None
    f_status: str | None = None
    f_remark: str | None = None

    class Config:
        frozen = True
        extra = "forbid"
        json_schema_extra = {
            "example": {
                "f_referenceCode": "REF000123",
                "f_prescriptionno": "RX6701020001",
                "f_seq": 1,
                "f_seqmax": 3,
                "f_prescriptiondate": "20250102",
                "f_ordercreatedate": "20250102093000",
                "f_hn": "HN0045",
                "f_sex": "M",
                "f_orderitemcode": "PARA500",
                "f_orderqty": 20.0,
                "f_prn": "1",
                "f_stat": "0",
            }
        }

    @field_validator("*", mode="before")
    @classmethod
    def blank_to_none(cls, value: Any) -> Any:
        """Trim strings; empty or whitespace-only text becomes None."""
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    def to_payload(self) -> dict[str, Any]:
        """JSON-ready dict; absent fields are emitted as null."""
        return self.model_dump(mode="json")
