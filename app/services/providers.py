"""HTTP clients for the KYC, credit bureau, bank verification, e-sign and SMS providers.

Each call returns the provider's parsed JSON body or raises ``ProviderError``.
Request and response shapes beyond the fields the workflow reads are the
providers' own.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from app.core.settings import settings

logger = logging.getLogger(__name__)


class ProviderError(Exception):
    def __init__(self, provider: str, message: str) -> None:
        super().__init__(message)
        self.provider = provider
        self.message = message


async def _post(provider: str, base_url: str, path: str, api_key: str | None, payload: dict[str, Any]) -> dict[str, Any]:
    headers = {"Content-Type": "application/json"}
    if api_key:
        headers["Authorization"] = f"Bearer {api_key}"
    try:
        async with httpx.AsyncClient(base_url=base_url, timeout=settings.provider_timeout_seconds) as client:
            response = await client.post(path, json=payload, headers=headers)
            response.raise_for_status()
            return response.json()
    except httpx.HTTPStatusError as exc:
        logger.warning("%s returned HTTP %s", provider, exc.response.status_code)
        raise ProviderError(provider, f"{provider} request failed with status {exc.response.status_code}") from exc
    except httpx.HTTPError as exc:
        logger.warning("%s request failed: %s", provider, exc)
        raise ProviderError(provider, f"{provider} is unreachable") from exc
    except ValueError as exc:
        raise ProviderError(provider, f"{provider} returned an invalid response") from exc


async def send_sms_otp(mobile: str, first_name: str, last_name: str | None, otp: str) -> dict[str, Any]:
    data = await _post(
        "sms",
        settings.sms_api_url,
        "/otp/send",
        settings.sms_api_key,
        {"mobile": mobile, "name": " ".join(p for p in (first_name, last_name) if p), "otp": otp},
    )
    if data.get("ErrorMessage") != "Success":
        raise ProviderError("sms", "Failed to send OTP")
    return data


async def request_aadhaar_otp(aadhaar: str) -> dict[str, Any]:
    data = await _post("aadhaar", settings.aadhaar_api_url, "/otp/generate", settings.aadhaar_api_key, {"aadhaar": aadhaar})
    model = data.get("model") or {}
    if not model.get("transactionId"):
        raise ProviderError("aadhaar", data.get("msg") or "Aadhaar OTP could not be generated")
    return model


async def submit_aadhaar_otp(otp: str, transaction_id: str, fwdp: str, code_verifier: str) -> dict[str, Any]:
    data = await _post(
        "aadhaar",
        settings.aadhaar_api_url,
        "/otp/verify",
        settings.aadhaar_api_key,
        {"otp": otp, "transactionId": transaction_id, "fwdp": fwdp, "codeVerifier": code_verifier},
    )
    if str(data.get("code")) != "200":
        raise ProviderError("aadhaar", data.get("msg") or "Aadhaar verification failed")
    return data.get("model") or {}


async def fetch_pan(pan: str) -> dict[str, Any]:
    data = await _post("pan", settings.pan_api_url, "/pan/verify", settings.pan_api_key, {"pan": pan})
    if data.get("result_code") != 101:
        raise ProviderError("pan", "PAN provider could not verify this PAN")
    return data.get("result") or {}


async def fetch_credit_report(inquiry: dict[str, Any]) -> dict[str, Any]:
    return await _post("bureau", settings.bureau_api_url, "/cir360report", settings.bureau_api_key, inquiry)


async def verify_bank_account(account_no: str, ifsc_code: str, beneficiary_name: str) -> dict[str, Any]:
    return await _post(
        "bank_verify",
        settings.bank_verify_api_url,
        "/bank/verify",
        settings.bank_verify_api_key,
        {"accountNumber": account_no, "ifsc": ifsc_code, "name": beneficiary_name},
    )


async def send_esign_request(letter: dict[str, Any]) -> dict[str, Any]:
    data = await _post("esign", settings.esign_api_url, "/esign/requests", settings.esign_api_key, letter)
    if not data.get("reference"):
        raise ProviderError("esign", data.get("message") or "E-sign request was not accepted")
    return data


def configured_providers() -> dict[str, bool]:
    """Whether each provider has an API key; calls to the rest go out unauthenticated."""
    return {
        "aadhaar": bool(settings.aadhaar_api_key),
        "pan": bool(settings.pan_api_key),
        "bureau": bool(settings.bureau_api_key),
        "bank_verify": bool(settings.bank_verify_api_key),
        "esign": bool(settings.esign_api_key),
        "sms": bool(settings.sms_api_key),
    }
