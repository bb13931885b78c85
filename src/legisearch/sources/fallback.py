"""Built-in bill descriptors and texts used when the live source is unavailable."""

from __future__ import annotations

from datetime import date
from typing import Mapping, Sequence

from legisearch.models import DocumentDescriptor
from legisearch.sources.parsing import extract_external_number

FALLBACK_VERSION = "2023.12"

_BILLTRACK = "https://prsindia.org/billtrack"

_DPDP_TEXT = """THE DIGITAL PERSONAL DATA PROTECTION BILL, 2023

A BILL

to provide for the processing of digital personal data in a manner that recognises both the rights of the individuals to protect their personal data and the need to process such personal data for lawful purposes and for matters connected therewith or incidental thereto.

BE it enacted by Parliament in the Seventy-fourth Year of the Republic of India as follows:

CHAPTER I
PRELIMINARY

1. Short title and commencement.-(1) This Act may be called the Digital Personal Data Protection Act, 2023.
(2) It shall come into force on such date as the Central Government may, by notification in the Official Gazette, appoint.

2. Definitions.-In this Act, unless the context otherwise requires,
(a) "Consent Manager" means a person registered with the Board who acts as a single point of contact to enable a Data Principal to give, manage, review and withdraw her consent through an accessible, transparent and interoperable platform;
(b) "Data Fiduciary" means any person who alone or in conjunction with other persons determines the purpose and means of processing of personal data;
(c) "Data Principal" means the individual to whom the personal data relates;
(d) "Data Processor" means any person who processes personal data on behalf of a Data Fiduciary;
(e) "Personal data" means any data about an individual who is identifiable by or in relation to such data.

CHAPTER II
OBLIGATIONS OF DATA FIDUCIARY

3. Grounds for processing personal data.-A Data Fiduciary shall process the personal data of a Data Principal only with the consent of the Data Principal or for certain legitimate uses as may be prescribed.

4. General obligations of Data Fiduciary.-Every Data Fiduciary shall process personal data in a fair and reasonable manner, collect only the personal data that is necessary for the specified purpose, ensure completeness, accuracy and consistency of personal data and implement appropriate technical and organisational measures to ensure effective observance of the provisions of this Act.

5. Additional obligations of Significant Data Fiduciary.-The Central Government may, having regard to the volume and sensitivity of personal data processed, the risk to the rights of Data Principal and the potential impact on the sovereignty and integrity of India, notify any Data Fiduciary or class of Data Fiduciaries as Significant Data Fiduciary.

CHAPTER III
RIGHTS AND DUTIES OF DATA PRINCIPAL

6. Right to access information.-Every Data Principal shall have the right to obtain from the Data Fiduciary a summary of personal data that is being processed and the identities of all other Data Fiduciaries and Data Processors with whom the personal data has been shared.

7. Right to correction and erasure.-The Data Principal shall have the right to correction, completion, updating and erasure of her personal data.

8. Right to grievance redressal.-Every Data Principal shall have the right to a readily available means of grievance redressal provided by the Data Fiduciary.

CHAPTER IV
DATA PROTECTION BOARD OF INDIA

9. Establishment of Board.-The Central Government shall, by notification in the Official Gazette, establish a Board to be known as the Data Protection Board of India.

10. Powers and functions of Board.-The Board shall inquire into any breach of the provisions of this Act on a complaint or on its own motion and may impose penalties for such breach.
"""

_TELECOM_TEXT = """THE TELECOMMUNICATIONS BILL, 2023

A BILL

to amend and consolidate the law relating to development, expansion and operation of telecommunication services and telecommunication networks, assignment of spectrum and for matters connected therewith or incidental thereto.

CHAPTER I
PRELIMINARY

1. Short title, extent and commencement.-(1) This Act may be called the Telecommunications Act, 2023.
(2) It extends to the whole of India and applies to any offence committed outside India involving telecommunication services provided in India.

2. Definitions.-In this Act, "telecommunication" means transmission, emission or reception of any messages by wire, radio, optical or other electro-magnetic systems, whether or not such messages have been subjected to rearrangement, computation or any other processes.

CHAPTER II
AUTHORISATION AND ASSIGNMENT OF SPECTRUM

3. Authorisation for telecommunication.-Any person intending to provide telecommunication services, establish, operate, maintain or expand a telecommunication network, or possess radio equipment shall obtain an authorisation from the Central Government.

4. Assignment of spectrum.-The Central Government shall assign spectrum for telecommunication through auction, except for entries listed in the First Schedule, for which assignment shall be done by administrative process.

CHAPTER III
RIGHT OF WAY

5. Right of way for telecommunication network.-A facility provider may seek a right of way over public or private property to establish telecommunication network, and the public entity shall grant such permission on a non-discriminatory and non-exclusive basis.

CHAPTER IV
PROTECTION OF USERS

6. Measures for protection of users.-The Central Government may provide for measures to protect users, including prior consent to receive specified messages such as advertising messages and the preparation of Do Not Disturb registers.
"""

_POST_OFFICE_TEXT = """THE POST OFFICE BILL, 2023

A BILL

to consolidate and amend the law relating to Post Office in India and for matters connected therewith or incidental thereto.

1. Short title and commencement.-(1) This Act may be called the Post Office Act, 2023.
(2) It shall come into force on such date as the Central Government may, by notification in the Official Gazette, appoint.

2. Definitions.-In this Act, "item" means any article that may be transmitted through the Post Office, including letter, parcel and any other article as may be prescribed.

3. Exclusive privileges.-The Post Office shall have the exclusive privilege of issuing postage stamps and shall provide such services as may be prescribed by the Central Government.

4. Power to intercept shipments.-The Central Government may, by notification, empower any officer to intercept, open or detain any item in the interest of the security of the State, friendly relations with foreign states, public order, emergency or public safety.

5. Exemption from liability.-The Post Office shall not incur any liability by reason of any loss, mis-delivery, delay or damage to an item during the course of transmission, except such liability as may be prescribed.
"""

_JAN_VISHWAS_TEXT = """THE JAN VISHWAS (AMENDMENT OF PROVISIONS) BILL, 2023

A BILL

further to amend certain enactments for decriminalising and rationalising offences to further enhance trust-based governance for ease of living and doing business.

1. Short title and commencement.-(1) This Act may be called the Jan Vishwas (Amendment of Provisions) Act, 2023.
(2) It shall come into force on such date as the Central Government may, by notification in the Official Gazette, appoint.

2. Amendment of certain enactments.-The enactments specified in the Schedule are hereby amended to the extent and in the manner mentioned therein.

3. Revision of fines and penalties.-The amount of fine and penalty specified in the enactments amended by this Act shall be increased by ten per cent. of the minimum amount after the expiry of every three years from the date of commencement of this Act.

4. Adjudicating officers.-The Central Government may appoint one or more adjudicating officers for the purposes of determining penalties under the amended enactments, and an appeal shall lie against their orders.

SCHEDULE
Amendments to the Indian Post Office Act, 1898, the Indian Forest Act, 1927, the Agricultural Produce (Grading and Marking) Act, 1937 and other enactments, replacing imprisonment provisions with monetary penalties.
"""

_MEDIATION_TEXT = """THE MEDIATION BILL, 2023

A BILL

to promote and facilitate mediation, especially institutional mediation, for resolution of disputes, commercial or otherwise, enforce mediated settlement agreements and provide for a body for registration of mediators.

1. Short title, extent and commencement.-(1) This Act may be called the Mediation Act, 2023.
(2) It extends to the whole of India.

2. Pre-litigation mediation.-Subject to the provisions of this Act, parties may, before filing any suit or proceedings of civil or commercial nature in any court, voluntarily and with mutual consent take steps to settle the disputes by pre-litigation mediation.

3. Time limit for completion of mediation.-The mediation process shall be completed within a period of one hundred and twenty days from the date fixed for the first appearance before the mediator, which may be extended by a further period of sixty days with the consent of the parties.

4. Mediation Council of India.-The Central Government shall establish the Mediation Council of India, which shall register mediators, recognise mediation service providers and mediation institutes.

5. Mediated settlement agreement.-A mediated settlement agreement signed by the parties and authenticated by the mediator shall be final, binding and enforceable in accordance with the provisions of the Code of Civil Procedure, 1908.
"""

# (title, year, session, status, introduction date, bill tracker slug, text)
_ENTRIES: Sequence[tuple[str, int, str, str, date, str, str]] = (
    (
        "The Digital Personal Data Protection Bill, 2023",
        2023,
        "Monsoon Session 2023",
        "Passed",
        date(2023, 8, 3),
        "the-digital-personal-data-protection-bill-2023",
        _DPDP_TEXT,
    ),
    (
        "The Telecommunications Bill, 2023",
        2023,
        "Winter Session 2023",
        "Passed",
        date(2023, 12, 18),
        "the-telecommunications-bill-2023",
        _TELECOM_TEXT,
    ),
    (
        "The Post Office Bill, 2023",
        2023,
        "Monsoon Session 2023",
        "Passed",
        date(2023, 8, 10),
        "the-post-office-bill-2023",
        _POST_OFFICE_TEXT,
    ),
    (
        "The Jan Vishwas (Amendment of Provisions) Bill, 2023",
        2023,
        "Monsoon Session 2023",
        "Passed",
        date(2022, 12, 22),
        "the-jan-vishwas-amendment-of-provisions-bill-2022",
        _JAN_VISHWAS_TEXT,
    ),
    (
        "The Mediation Bill, 2023",
        2023,
        "Monsoon Session 2023",
        "Passed",
        date(2021, 12, 20),
        "the-mediation-bill-2021",
        _MEDIATION_TEXT,
    ),
)

FALLBACK_DESCRIPTORS: Sequence[DocumentDescriptor] = tuple(
    sorted(
        (
            DocumentDescriptor(
                title=title,
                external_number=extract_external_number(title),
                year=year,
                source_location=f"{_BILLTRACK}/{slug}",
                session=session,
                status=status,
                introduction_date=introduced,
            )
            for title, year, session, status, introduced, slug, _ in _ENTRIES
        ),
        key=lambda descriptor: descriptor.introduction_date,
        reverse=True,
    )
)

FALLBACK_TEXTS: Mapping[str, str] = {extract_external_number(entry[0]): entry[-1] for entry in _ENTRIES}


def fallback_descriptors(limit: int) -> list[DocumentDescriptor]:
    """Return the built-in descriptors, most recent first, truncated to ``limit``."""

    if limit <= 0:
        return []
    return list(FALLBACK_DESCRIPTORS[:limit])
