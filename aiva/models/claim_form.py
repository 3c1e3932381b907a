"""Travel claim form schema and attachment model."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple


class FieldType(str, Enum):
    """Value type of a form slot."""
    TEXT = "text"
    EMAIL = "email"
    PHONE = "phone"
    DATE = "date"
    DATETIME = "datetime"
    CHOICES = "choices"
    BOOLEAN = "boolean"
    FILES = "files"


@dataclass(frozen=True)
class FieldSpec:
    """
    One named, typed slot of the claim form.

    Attributes:
        key: Stable key used in drafts, payloads and model prompts
        label: Human label shown in confirmations and questions
        field_type: Implicit value type
        required: Whether the insurer's form marks the field as required
        question: Prompt used by guided mode
        aliases: Extra names accepted by "set <field>=<value>"
        choices: Allowed options for CHOICES fields
    """
    key: str
    label: str
    field_type: FieldType = FieldType.TEXT
    required: bool = False
    question: str = ""
    aliases: Tuple[str, ...] = ()
    choices: Tuple[str, ...] = ()

    @property
    def is_file(self) -> bool:
        return self.field_type == FieldType.FILES

    @property
    def is_scalar(self) -> bool:
        return self.field_type != FieldType.FILES


@dataclass
class Attachment:
    """An uploaded file held in memory until submission."""
    filename: str
    content_type: str
    data: bytes = field(repr=False)

    @property
    def size(self) -> int:
        return len(self.data)


CLAIM_TYPE_CHOICES = (
    "Medical Expenses",
    "Trip Cancellation",
    "Travel Delay",
    "Baggage Loss",
    "Other",
)


class FieldSchema:
    """Ordered collection of FieldSpecs with lookup helpers."""

    def __init__(self, name: str, fields: List[FieldSpec]):
        self.name = name
        self.fields = list(fields)
        self._by_key: Dict[str, FieldSpec] = {f.key: f for f in self.fields}

    def __iter__(self):
        return iter(self.fields)

    def __len__(self) -> int:
        return len(self.fields)

    def __contains__(self, key: str) -> bool:
        return key in self._by_key

    def get(self, key: str) -> Optional[FieldSpec]:
        return self._by_key.get(key)

    def label(self, key: str) -> str:
        spec = self._by_key.get(key)
        return spec.label if spec else key

    @property
    def keys(self) -> List[str]:
        return [f.key for f in self.fields]

    @property
    def scalar_fields(self) -> List[FieldSpec]:
        return [f for f in self.fields if f.is_scalar]

    @property
    def file_fields(self) -> List[FieldSpec]:
        return [f for f in self.fields if f.is_file]

    @property
    def required_fields(self) -> List[FieldSpec]:
        return [f for f in self.fields if f.required]

    @property
    def guided_fields(self) -> List[FieldSpec]:
        """Required fields that guided mode asks for, one per turn."""
        return [
            f for f in self.fields
            if f.required and f.field_type not in (FieldType.BOOLEAN, FieldType.FILES)
        ]

    def alias_table(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        """
        Map lower-cased names (key, label, aliases) to canonical keys.

        Args:
            extra: Additional alias -> key entries from configuration

        Returns:
            Alias table for resolving "set <field>=<value>" commands
        """
        table: Dict[str, str] = {}
        for spec in self.fields:
            table[spec.key.lower()] = spec.key
            table[spec.label.lower().rstrip(".")] = spec.key
            for alias in spec.aliases:
                table[alias.lower()] = spec.key
        for alias, key in (extra or {}).items():
            if key in self._by_key:
                table[alias.lower()] = key
        return table


TRAVEL_CLAIM_SCHEMA = FieldSchema("travel_claim", [
    # Insured person
    FieldSpec("fullName", "Full Name", FieldType.TEXT, True,
              "What is your full name as shown on your passport?",
              aliases=("name", "full name", "insured name")),
    FieldSpec("policyNo", "Policy No.", FieldType.TEXT, True,
              "What is your policy number?",
              aliases=("policy", "policy no", "policy number", "policy_no")),
    FieldSpec("passportNo", "Passport No.", FieldType.TEXT, True,
              "What is your passport number?",
              aliases=("passport", "passport no", "passport number")),
    FieldSpec("destinationCountry", "Destination Country", FieldType.TEXT, True,
              "Which country did you travel to?",
              aliases=("destination", "country")),
    FieldSpec("phone", "Phone", FieldType.PHONE, True,
              "What phone number can we reach you on?",
              aliases=("mobile", "tel", "phone number", "contact")),
    FieldSpec("email", "Email", FieldType.EMAIL, True,
              "What is your email address?",
              aliases=("e-mail", "mail", "email address")),
    # Travel details
    FieldSpec("departureDate", "Departure Date", FieldType.DATE, True,
              "When did you depart? (YYYY-MM-DD)",
              aliases=("departure", "depart", "departed")),
    FieldSpec("returnDate", "Return Date", FieldType.DATE, True,
              "When did you return? (YYYY-MM-DD)",
              aliases=("return",)),
    FieldSpec("airline", "Airline / Flight No.", FieldType.TEXT, False,
              "Which airline or flight number were you on?",
              aliases=("flight no", "flight number")),
    # Claim classification
    FieldSpec("claimTypes", "Type of Claim", FieldType.CHOICES, False,
              "What type of claim is this?",
              aliases=("claim type", "claim types", "type"),
              choices=CLAIM_TYPE_CHOICES),
    FieldSpec("otherClaimDetail", "Other Claim Detail", FieldType.TEXT, False,
              "Please describe the other claim type.",
              aliases=("other", "other detail")),
    # Incident
    FieldSpec("incidentDateTime", "Date/Time of Incident", FieldType.DATETIME, True,
              "When did the incident happen? (date and time)",
              aliases=("incident date", "incident time", "datetime", "when")),
    FieldSpec("incidentLocation", "Incident Location", FieldType.TEXT, True,
              "Where did the incident happen?",
              aliases=("location", "where", "place")),
    FieldSpec("incidentDescription", "Incident Description", FieldType.TEXT, True,
              "Briefly describe what happened.",
              aliases=("description", "details", "what happened")),
    # Payout
    FieldSpec("bankName", "Bank", FieldType.TEXT, True,
              "Which bank should we pay the claim into?",
              aliases=("bank", "bank name")),
    FieldSpec("accountNo", "Account No.", FieldType.TEXT, True,
              "What is the bank account number?",
              aliases=("account", "account no", "account number", "acct")),
    FieldSpec("accountName", "Account Name", FieldType.TEXT, True,
              "What is the name on the bank account?",
              aliases=("account name", "account holder")),
    # Declaration
    FieldSpec("declaration", "Declaration", FieldType.BOOLEAN, True,
              "Do you declare that all information given is true and correct?",
              aliases=("declare", "agree")),
    FieldSpec("signatureDate", "Signature Date", FieldType.DATE, True,
              "What date are you signing this claim? (YYYY-MM-DD)",
              aliases=("signature date", "signed", "date")),
    # Attachments
    FieldSpec("passportCopy", "Passport Copy", FieldType.FILES, True,
              aliases=("passport copy",)),
    FieldSpec("medicalReceipts", "Medical Receipts", FieldType.FILES, False,
              aliases=("receipts", "medical receipts")),
    FieldSpec("policeReport", "Police Report", FieldType.FILES, False,
              aliases=("police report",)),
    FieldSpec("otherDocs", "Other Supporting Documents", FieldType.FILES, False,
              aliases=("other docs", "documents")),
    FieldSpec("signatureFile", "Signature Image", FieldType.FILES, False,
              aliases=("signature",)),
])
