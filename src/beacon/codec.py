"""Wire-format DNS messages for mDNS, encoded and decoded with dnslib.

Brief:
  The responder works with a small Message model: header flags plus ordered
  question/answer/authority/additional lists. dnslib does the byte-level
  work; this module only maps between dnslib objects and beacon's own
  Name/RecordData values and interprets the class top bit the mDNS way
  (cache-flush on records, unicast-response on questions).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

from dnslib import AAAA as _AAAA
from dnslib import PTR as _PTR
from dnslib import RD, RR, SRV as _SRV, TXT as _TXT
from dnslib import A as _A
from dnslib import DNSHeader, DNSLabel, DNSQuestion, DNSRecord
from dnslib.label import DNSBuffer

from .errors import DecodeError
from .names import Name
from .records import (
    AAAA,
    PTR,
    SRV,
    TXT,
    TYPE_A,
    TYPE_AAAA,
    TYPE_PTR,
    TYPE_SRV,
    TYPE_TXT,
    A,
    RawData,
    RecordData,
    rtype_of,
)

CLASS_IN = 1
CLASS_MASK = 0x7FFF
CLASS_TOP_BIT = 0x8000


@dataclass(frozen=True)
class QuestionEntry:
    """A question section entry; ``unicast`` is the QU bit."""

    name: Name
    rtype: int
    unicast: bool = False


@dataclass(frozen=True)
class RecordEntry:
    """An answer/authority/additional entry; ``cacheflush`` is the class top bit."""

    name: Name
    ttl: int
    data: RecordData
    cacheflush: bool = False

    @property
    def rtype(self) -> int:
        return rtype_of(self.data)


class _FlatBuffer(DNSBuffer):
    """DNSBuffer that never emits compression pointers.

    Used to capture rdata of unknown record types as standalone bytes that
    can be re-embedded in another packet.
    """

    def encode_name(self, name):  # type: ignore[no-untyped-def]
        if not isinstance(name, DNSLabel):
            name = DNSLabel(name)
        for part in name.label:
            self.pack("!B", len(part))
            self.append(part)
        self.append(b"\x00")


def _to_label(name: Name) -> DNSLabel:
    return DNSLabel([label.encode("utf-8") for label in name.labels])


def _from_label(label: DNSLabel) -> Name:
    return Name([bytes(part).decode("utf-8", "replace") for part in label.label], True)


def _to_rdata(data: RecordData) -> RD:
    if isinstance(data, A):
        return _A(data.address)
    elif isinstance(data, AAAA):
        return _AAAA(data.address)
    elif isinstance(data, PTR):
        return _PTR(_to_label(data.target))
    elif isinstance(data, SRV):
        return _SRV(
            priority=data.priority,
            weight=data.weight,
            port=data.port,
            target=_to_label(data.target),
        )
    elif isinstance(data, TXT):
        return _TXT(list(data.strings))
    elif isinstance(data, RawData):
        return RD(data.data)
    raise TypeError("unsupported record data %r" % (data,))


def _from_rdata(rtype: int, rd: RD) -> RecordData:
    if rtype == TYPE_A and isinstance(rd, _A):
        return A(str(rd))
    elif rtype == TYPE_AAAA and isinstance(rd, _AAAA):
        return AAAA(str(rd))
    elif rtype == TYPE_PTR and isinstance(rd, _PTR):
        return PTR(_from_label(rd.label))
    elif rtype == TYPE_SRV and isinstance(rd, _SRV):
        return SRV(int(rd.priority), int(rd.weight), int(rd.port), _from_label(rd.target))
    elif rtype == TYPE_TXT and isinstance(rd, _TXT):
        return TXT(tuple(bytes(s) for s in rd.data))
    buf = _FlatBuffer()
    rd.pack(buf)
    return RawData(int(rtype), bytes(buf.data))


def _record_from_rr(rr: RR) -> RecordEntry:
    return RecordEntry(
        name=_from_label(rr.rname),
        ttl=int(rr.ttl),
        data=_from_rdata(int(rr.rtype), rr.rdata),
        cacheflush=bool(int(rr.rclass) & CLASS_TOP_BIT),
    )


def _rr_from_record(entry: RecordEntry) -> RR:
    rclass = CLASS_IN | (CLASS_TOP_BIT if entry.cacheflush else 0)
    return RR(
        rname=_to_label(entry.name),
        rtype=entry.rtype,
        rclass=rclass,
        ttl=max(0, int(entry.ttl)),
        rdata=_to_rdata(entry.data),
    )


@dataclass
class Message:
    """
    Brief: A DNS message as seen by the mDNS engine.

    Inputs:
      - id: message id (0 for multicast traffic).
      - qr, aa, rd, tc: header flags.

    Outputs:
      - Message instance; question/record lists start empty.

    Notes:
      - add_question/add_answer/add_additional ignore exact duplicates and
        return False for them, so callers can compose answers from several
        services without repeating records.
    """

    id: int = 0
    qr: bool = False
    aa: bool = False
    rd: bool = False
    tc: bool = False
    questions: List[QuestionEntry] = field(default_factory=list)
    answers: List[RecordEntry] = field(default_factory=list)
    authority: List[RecordEntry] = field(default_factory=list)
    additional: List[RecordEntry] = field(default_factory=list)

    @classmethod
    def query(cls) -> "Message":
        return cls(id=0, qr=False, aa=False, rd=False)

    @classmethod
    def response(cls) -> "Message":
        return cls(id=0, qr=True, aa=True, rd=False)

    def is_query(self) -> bool:
        return not self.qr

    def is_response(self) -> bool:
        return self.qr

    def add_question(self, name: Name, rtype: int, unicast: bool = False) -> bool:
        entry = QuestionEntry(Name.create(name), int(rtype), bool(unicast))
        if entry in self.questions:
            return False
        self.questions.append(entry)
        return True

    def add_answer(self, name: Name, ttl: int, data: RecordData, cacheflush: bool = False) -> bool:
        return self._add_record(self.answers, RecordEntry(Name.create(name), int(ttl), data, bool(cacheflush)))

    def add_authority(self, name: Name, ttl: int, data: RecordData, cacheflush: bool = False) -> bool:
        return self._add_record(self.authority, RecordEntry(Name.create(name), int(ttl), data, bool(cacheflush)))

    def add_additional(self, name: Name, ttl: int, data: RecordData, cacheflush: bool = False) -> bool:
        return self._add_record(self.additional, RecordEntry(Name.create(name), int(ttl), data, bool(cacheflush)))

    @staticmethod
    def _add_record(section: List[RecordEntry], entry: RecordEntry) -> bool:
        if entry in section:
            return False
        section.append(entry)
        return True

    def encode(self) -> bytes:
        """Brief: Pack the message into wire format bytes."""
        return encode(self)

    @classmethod
    def decode(cls, data: bytes) -> "Message":
        """Brief: Parse wire format bytes; raises DecodeError on malformed input."""
        return decode(data)


def encode(msg: Message) -> bytes:
    """
    Brief: Encode a Message to wire format.

    Inputs:
    - msg: Message to encode

    Outputs:
    - bytes: packed DNS message
    """

    header = DNSHeader(id=msg.id, qr=int(msg.qr), aa=int(msg.aa), rd=int(msg.rd), tc=int(msg.tc))
    # DNSHeader treats a falsy id as "pick a random one"; mDNS wants 0.
    header.id = int(msg.id) & 0xFFFF
    record = DNSRecord(
        header,
        questions=[
            DNSQuestion(
                _to_label(q.name),
                qtype=q.rtype,
                qclass=CLASS_IN | (CLASS_TOP_BIT if q.unicast else 0),
            )
            for q in msg.questions
        ],
        rr=[_rr_from_record(a) for a in msg.answers],
        auth=[_rr_from_record(a) for a in msg.authority],
        ar=[_rr_from_record(a) for a in msg.additional],
    )
    return bytes(record.pack())


def decode(data: bytes) -> Message:
    """
    Brief: Decode wire format bytes into a Message.

    Inputs:
    - data: raw UDP payload

    Outputs:
    - Message

    Raises:
    - DecodeError: payload is not a well-formed DNS message
    """

    try:
        record = DNSRecord.parse(data)
        header = record.header
        msg = Message(
            id=int(header.id),
            qr=bool(header.qr),
            aa=bool(header.aa),
            rd=bool(header.rd),
            tc=bool(header.tc),
        )
        for q in record.questions:
            msg.questions.append(
                QuestionEntry(
                    _from_label(q.qname),
                    int(q.qtype),
                    bool(int(q.qclass) & CLASS_TOP_BIT),
                )
            )
        msg.answers.extend(_record_from_rr(rr) for rr in record.rr)
        msg.authority.extend(_record_from_rr(rr) for rr in record.auth)
        msg.additional.extend(_record_from_rr(rr) for rr in record.ar)
    except Exception as exc:
        raise DecodeError("malformed DNS message: %s" % exc) from exc
    return msg
