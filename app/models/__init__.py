from app.models.applicant import Applicant, ApplicantBank
from app.models.application import Application
from app.models.cam_details import CamDetails
from app.models.closed import ClosedEntry, ClosedLedger
from app.models.disbursal import Disbursal
from app.models.document import Document
from app.models.employee import Employee
from app.models.kyc import AadhaarDetails, PanDetails
from app.models.lead import Lead
from app.models.lead_log import LeadLog
from app.models.lead_status import LeadStatus
from app.models.otp import Otp
from app.models.sanction import Sanction
from app.models.sequence import Sequence

__all__ = [
    "AadhaarDetails",
    "Applicant",
    "ApplicantBank",
    "Application",
    "CamDetails",
    "ClosedEntry",
    "ClosedLedger",
    "Disbursal",
    "Document",
    "Employee",
    "Lead",
    "LeadLog",
    "LeadStatus",
    "Otp",
    "PanDetails",
    "Sanction",
    "Sequence",
]
