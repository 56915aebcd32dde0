"""
Tests for utility functions and configuration parsing.
"""

import pytest

from dental_receptionist.config import ClinicConfig, Settings, parse_calendar_ids
from dental_receptionist.core.enums import Intent, TreatmentType
from dental_receptionist.core.exceptions import NotFoundError
from dental_receptionist.core.models import ExtractedEntities
from dental_receptionist.services.conversation import is_reset_command
from dental_receptionist.utils import PhoneNumberParser, TextProcessor, ValidationUtils, WhatsAppTextExtractor
from dental_receptionist.utils.event_log import log_event, read_events, set_log_path, set_turn_id


class TestTextProcessor:
    """Test text processing utilities."""

    def test_normalize(self):
        assert TextProcessor.normalize("  Don’t   CANCEL  ") == "don't cancel"
        assert TextProcessor.normalize(None) == ""

    def test_split_short_text(self):
        assert TextProcessor.split_text_for_whatsapp("hello", 10) == ["hello"]

    def test_split_prefers_line_breaks(self):
        chunks = TextProcessor.split_text_for_whatsapp("aaaa\nbbbb\ncccc", 9)
        assert chunks == ["aaaa\nbbbb", "cccc"]

    def test_split_hard_cuts_long_lines(self):
        chunks = TextProcessor.split_text_for_whatsapp("x" * 25, 10)
        assert chunks == ["x" * 10, "x" * 10, "x" * 5]


class TestWhatsAppTextExtractor:
    def test_extract_text_message(self):
        body = {"entry": [{"changes": [{"value": {"messages": [
            {"from": "15551234567", "id": "wamid.1", "text": {"body": "  hi  "}}
        ]}}]}]}
        message = WhatsAppTextExtractor.extract_message(body)
        assert message.phone == "15551234567"
        assert message.text == "hi"
        assert message.message_id == "wamid.1"

    def test_non_text_message_has_empty_text(self):
        body = {"entry": [{"changes": [{"value": {"messages": [
            {"from": "15551234567", "id": "wamid.2", "type": "image", "image": {}}
        ]}}]}]}
        assert WhatsAppTextExtractor.extract_message(body).text == ""

    def test_status_update_has_no_message(self):
        assert WhatsAppTextExtractor.extract_message({"entry": [{"changes": [{"value": {}}]}]}) is None
        assert WhatsAppTextExtractor.extract_message({}) is None


class TestPhoneNumberParser:
    def test_digits(self):
        assert PhoneNumberParser.digits("+1 (555) 123-4567") == "15551234567"
        assert PhoneNumberParser.digits(None) == ""

    @pytest.mark.parametrize(
        "a,b,same",
        [
            ("+15551234567", "5551234567", True),
            ("+1 555 123 4567", "+15551234567", True),
            ("+15551234567", "+15551234568", False),
            ("1234", "91234", False),
            ("", "5551234567", False),
        ],
    )
    def test_same_number(self, a, b, same):
        assert PhoneNumberParser.same_number(a, b) is same


class TestValidationUtils:
    """Test validation utilities."""

    def test_validate_patient_name(self):
        assert ValidationUtils.validate_patient_name("Mary-Jane O'Neil") == (True, None)
        assert not ValidationUtils.validate_patient_name("J")[0]
        assert not ValidationUtils.validate_patient_name("R2D2")[0]
        assert not ValidationUtils.validate_patient_name("a" * 101)[0]
        assert not ValidationUtils.validate_patient_name(None)[0]

    def test_validate_number_of_teeth(self):
        assert ValidationUtils.validate_number_of_teeth(32)[0]
        assert not ValidationUtils.validate_number_of_teeth(0)[0]
        assert not ValidationUtils.validate_number_of_teeth(33)[0]
        assert not ValidationUtils.validate_number_of_teeth(True)[0]

    def test_sanitize_text(self):
        assert ValidationUtils.sanitize_text("  hi\x00 there\n\n ") == "hi there"
        assert ValidationUtils.sanitize_text("") == ""

    def test_clean_entities(self):
        clinic = ClinicConfig()
        entities = ExtractedEntities(
            patient_name="  Jane   Doe ",
            treatment_type="braces",
            dentist_name="dr bracesb",
            number_of_teeth=2,
            date_time_text="x",
        )
        cleaned, problems = ValidationUtils.clean_entities(entities, clinic)

        assert cleaned.patient_name == "Jane Doe"
        assert cleaned.treatment_type == "Braces Maintenance"
        assert cleaned.dentist_name == "Dr BracesB"
        assert cleaned.number_of_teeth == 2
        assert cleaned.date_time_text is None
        assert len(problems) == 1


class TestConfig:
    def test_parse_calendar_ids(self):
        raw = "Dr GeneralA:cal-a@group.calendar.google.com, Dr GeneralB : cal-b ,broken,:x,Dr C:"
        assert parse_calendar_ids(raw) == {
            "Dr GeneralA": "cal-a@group.calendar.google.com",
            "Dr GeneralB": "cal-b",
        }
        assert parse_calendar_ids("") == {}

    def test_clinic_lookup(self, clinic):
        assert clinic.calendar_for("Dr GeneralA") == "cal-ga"
        assert clinic.dentist_for_calendar("cal-bb") == "Dr BracesB"
        assert clinic.find_dentist("dr. generala") == "Dr GeneralA"
        with pytest.raises(NotFoundError):
            ClinicConfig().calendar_for("Dr GeneralA")

    def test_cancellation_policy(self):
        assert not Settings(cancellation_policy="confirm").immediate_cancellation
        assert Settings(cancellation_policy=" Immediate ").immediate_cancellation


class TestEnums:
    def test_intent_from_string(self):
        assert Intent.from_string("Price Inquiry") == Intent.PRICE_INQUIRY
        assert Intent.from_string("appointment-inquiry") == Intent.APPOINTMENT_INQUIRY
        assert Intent.from_string("greeting") is None
        assert Intent.from_string(None) is None

    def test_treatment_from_string(self):
        assert TreatmentType.from_string("braces_maintenance") == TreatmentType.BRACES_MAINTENANCE
        assert TreatmentType.from_string("check-up") == TreatmentType.CONSULTATION
        assert TreatmentType.from_string("whitening") is None


@pytest.mark.parametrize(
    "text,expected",
    [
        ("end session", True),
        ("Clear my session", True),
        ("reset session!", True),
        ("start over", True),
        ("restart", True),
        ("new session", True),
        ("please start over", True),
        ("I want to start over with a cleaning", False),
        ("session", False),
    ],
)
def test_reset_commands(text, expected):
    assert is_reset_command(text) is expected


def test_event_log_records_turn_id(tmp_path):
    set_log_path(tmp_path / "events.jsonl")
    set_turn_id("abc")

    log_event("booking_created", {"phone": "1"})
    log_event("booking_failed", {"phone": "1"}, turn_id="override")

    events = read_events()
    assert [(e["event"], e["turn_id"]) for e in events] == [
        ("booking_created", "abc"),
        ("booking_failed", "override"),
    ]
