"""
OTP BACKEND API ROUTES - FLASK BLUEPRINT

HTTP adapter over core.service.OtpService. Routes only parse the request
and shape the response; errors are raised as OtpError and turned into JSON
by the handler registered in backend/app.py.

EXAMPLES:
curl http://localhost:5000/api/code/github
curl http://localhost:5000/api/codes
curl -X POST http://localhost:5000/api/accounts -H "Content-Type: application/json" \
     -d '{"key": "github", "secret": "JBSWY3DPEHPK3PXP", "encrypt": true}'
curl -X POST http://localhost:5000/api/accounts/import -H "Content-Type: application/json" \
     -d '{"uri": "otpauth://totp/GitHub:alice?secret=JBSWY3DPEHPK3PXP&issuer=GitHub"}'
"""

import base64
import io

import qrcode
from flask import Blueprint, current_app, jsonify, request

from core.errors import InvalidAccountParameters, MalformedOtpUri

otp_bp = Blueprint('otp', __name__, url_prefix='/api')

CREATE_FIELDS = ("key", "secret", "name", "digits", "period", "algorithm", "type", "counter", "encrypt")


def _service():
    return current_app.extensions["otp_service"]


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidAccountParameters("Request body must be a JSON object")
    return data


def _account_echo(account, message: str) -> dict:
    return {
        "message": message,
        "key": account.key,
        "name": account.name,
        "algorithm": account.algorithm,
    }


@otp_bp.route('/code/<string:key>', methods=['GET'])
def get_code(key):
    """
    CURRENT CODE FOR ONE ACCOUNT

      curl http://localhost:5000/api/code/github

    TOTP: {"key", "account", "code", "type", "algorithm", "timeRemaining", "expiresAt"}
    HOTP: {"key", "account", "code", "type", "algorithm", "counter"}
          every call consumes one counter value
    404 carries "availableAccounts".
    """
    return jsonify(_service().issue_code(key))


@otp_bp.route('/codes', methods=['GET'])
def get_all_codes():
    """
    CODES FOR EVERY ACCOUNT

    Accounts that fail appear with "error" and "kind" instead of "code".
    HOTP accounts only get a code (and consume a counter) with ?include_hotp=true.
    """
    include_hotp = request.args.get('include_hotp', 'false').lower() in ('1', 'true', 'yes')
    return jsonify({"codes": _service().issue_all(include_hotp=include_hotp)})


@otp_bp.route('/accounts', methods=['GET'])
def list_accounts():
    accounts = _service().list_accounts()
    return jsonify({"accounts": accounts, "total": len(accounts)})


@otp_bp.route('/accounts', methods=['POST'])
def add_account():
    """
    ADD AN ACCOUNT

    Body: {"key", "secret", "name"?, "digits"?, "period"?, "algorithm"?,
           "type"?, "counter"?, "encrypt"?}
    """
    data = _json_body()
    if not data.get("key") or not data.get("secret"):
        raise InvalidAccountParameters("key and secret are required", key=data.get("key"))
    fields = {name: data[name] for name in CREATE_FIELDS if name in data and data[name] is not None}
    account = _service().create_account(**fields)
    return jsonify(_account_echo(account, "Account added successfully")), 201


@otp_bp.route('/accounts/import', methods=['POST'])
def import_account():
    """
    ADD AN ACCOUNT FROM A PROVISIONING URI

    Body: {"uri": "otpauth://...", "key"?, "name"?, "encrypt"?}
    The URI is the text decoded from an authenticator QR code.
    """
    data = _json_body()
    uri = data.get("uri")
    if not uri:
        raise MalformedOtpUri("uri is required")
    encrypt = data.get("encrypt")
    account = _service().import_uri(
        uri,
        key=data.get("key"),
        name=data.get("name"),
        encrypt=False if encrypt is None else encrypt,
    )
    return jsonify(_account_echo(account, "Account imported successfully")), 201


@otp_bp.route('/accounts/<string:key>', methods=['GET'])
def get_account(key):
    return jsonify(_service().get_account(key).summary())


@otp_bp.route('/accounts/<string:key>', methods=['PATCH', 'PUT'])
def update_account(key):
    """
    UPDATE AN ACCOUNT

    Body: any of {"name", "secret", "digits", "period", "algorithm", "type", "encrypt"}
    """
    account = _service().update_account(key, **_json_body())
    return jsonify(_account_echo(account, "Account updated successfully"))


@otp_bp.route('/accounts/<string:key>', methods=['DELETE'])
def delete_account(key):
    _service().delete_account(key)
    return jsonify({"message": "Account deleted successfully", "key": key})


@otp_bp.route('/accounts/<string:key>/otpauth_uri', methods=['GET'])
def get_otpauth_uri(key):
    """
    PROVISIONING URI FOR ENROLLING ANOTHER AUTHENTICATOR

      curl "http://localhost:5000/api/accounts/github/otpauth_uri?issuer=GitHub"
    """
    issuer = request.args.get('issuer', current_app.config["DEFAULT_ISSUER"])
    return jsonify({"key": key, "uri": _service().provisioning_uri(key, issuer=issuer)})


@otp_bp.route('/accounts/<string:key>/qr_code', methods=['GET'])
def get_qr_code(key):
    """Same URI as /otpauth_uri rendered as a base64 PNG data URL."""
    issuer = request.args.get('issuer', current_app.config["DEFAULT_ISSUER"])
    uri = _service().provisioning_uri(key, issuer=issuer)

    qr = qrcode.QRCode(version=1, box_size=10, border=5)
    qr.add_data(uri)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")

    buffer = io.BytesIO()
    img.save(buffer, format='PNG')
    img_str = base64.b64encode(buffer.getvalue()).decode()
    return jsonify({"key": key, "qr_code": f"data:image/png;base64,{img_str}"})
