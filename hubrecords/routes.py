# hubrecords/routes.py

# JSON API routes for accounts, hub records and admin operations.
# Every record route goes through the authorization policy inside RecordService.

from flask import request, jsonify
from hubrecords import app, limiter
from hubrecords.audit.audit_logger import AuditLogger
from hubrecords.authentication.credentials import CredentialStore
from hubrecords.authentication.rbac import AuthorizationPolicy, Operation, current_identity, require_auth, require_permission
from hubrecords.encryption.field_encryption import FieldEncryptionCodec
from hubrecords.encryption.password_hashing import PasswordHashingService
from hubrecords.errors import ValidationError
from hubrecords.operations.health_monitor import check_health, check_readiness
from hubrecords.records.service import RecordService, DEFAULT_PAGE_SIZE
from hubrecords.security.token_manager import TokenManager

# Initialize services
audit_logger = AuditLogger(log_dir=app.config['AUDIT_LOG_DIR'], signing_key=app.config['AUDIT_SIGNING_KEY'])
token_manager = TokenManager(app)
password_service = PasswordHashingService(enforce_policy=app.config['ENFORCE_PASSWORD_POLICY'])
credential_store = CredentialStore(password_service=password_service, token_manager=token_manager,
                                   audit_logger=audit_logger)
policy = AuthorizationPolicy(audit_logger=audit_logger)
codec = FieldEncryptionCodec(master_key=app.config['FIELD_ENCRYPTION_KEY'],
                             enabled=app.config['FIELD_ENCRYPTION_ENABLED'])
record_service = RecordService(codec, policy, audit_logger=audit_logger,
                               strict_transitions=app.config['STRICT_STATUS_TRANSITIONS'],
                               max_page_size=app.config['ADMIN_PAGE_MAX'])

login_required = require_auth(credential_store)
auth_limit = limiter.limit(lambda: app.config['AUTH_RATE_LIMIT'])


def _json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def _int_arg(name, default):
    raw = request.args.get(name)
    if raw is None or raw == '':
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer", errors={name: 'must be an integer'})


@app.route('/health')
def health():
    res = check_health()
    return jsonify(res), 200 if res['overall_ok'] else 503


@app.route('/ready')
def ready():
    res = check_readiness()
    return jsonify(res), 200 if res['overall_ok'] else 503


# -- accounts ----------------------------------------------------------------

@app.route('/api/v1/auth/register', methods=['POST'])
@app.route('/api/v1/auth/signup', methods=['POST'])
@auth_limit
def register():
    data = _json_body()
    user = credential_store.register(data.get('email'), data.get('password'), name=data.get('name'),
                                     user_metadata=data.get('user_metadata'))
    user['token'] = credential_store.issue_token(user['userId'])
    return jsonify(user), 201


@app.route('/api/v1/auth/login', methods=['POST'])
@auth_limit
def login():
    data = _json_body()
    user = credential_store.login(data.get('email'), data.get('password'))
    user['token'] = credential_store.issue_token(user['userId'])
    return jsonify(user)


@app.route('/api/v1/auth/me')
@login_required
def me():
    return jsonify(credential_store.get_current_user(current_identity()))


@app.route('/api/v1/auth/password', methods=['POST', 'PUT'])
@login_required
@auth_limit
def change_password():
    data = _json_body()
    credential_store.change_password(current_identity().user_id, data.get('current_password'),
                                     data.get('new_password'))
    return jsonify({'success': True})


# -- hub records -------------------------------------------------------------

@app.route('/api/v1/records', methods=['POST'])
@login_required
def create_record():
    record = record_service.create(current_identity(), _json_body())
    return jsonify(record), 201


@app.route('/api/v1/records', methods=['GET'])
@login_required
def list_records():
    records = record_service.list_records(current_identity(),
                                          owner_id=request.args.get('owner_id') or request.args.get('user_id'),
                                          status=request.args.get('status'))
    return jsonify(records)


@app.route('/api/v1/records/search')
@login_required
def search_records():
    records = record_service.search(current_identity(), request.args.get('q', ''),
                                    owner_id=request.args.get('owner_id') or request.args.get('user_id'))
    return jsonify(records)


@app.route('/api/v1/records/stats/<owner_id>')
@login_required
def record_stats(owner_id):
    return jsonify(record_service.stats_for_owner(current_identity(), owner_id))


@app.route('/api/v1/records/<record_id>', methods=['GET'])
@login_required
def get_record(record_id):
    return jsonify(record_service.get(current_identity(), record_id))


@app.route('/api/v1/records/<record_id>', methods=['PUT', 'PATCH'])
@login_required
def update_record(record_id):
    return jsonify(record_service.update(current_identity(), record_id, _json_body()))


@app.route('/api/v1/records/<record_id>', methods=['DELETE'])
@login_required
def delete_record(record_id):
    return jsonify(record_service.delete(current_identity(), record_id))


# -- admin -------------------------------------------------------------------

@app.route('/api/v1/admin/users')
@login_required
@require_permission(policy, Operation.LIST_USERS)
def admin_list_users():
    return jsonify(credential_store.list_users())


@app.route('/api/v1/admin/records')
@login_required
@require_permission(policy, Operation.LIST_ALL_RECORDS)
def admin_list_records():
    page = record_service.list_all_records(current_identity(),
                                           status=request.args.get('status'),
                                           limit=_int_arg('limit', DEFAULT_PAGE_SIZE),
                                           offset=_int_arg('offset', 0))
    return jsonify(page)


@app.route('/api/v1/admin/stats')
@login_required
@require_permission(policy, Operation.VIEW_GLOBAL_STATS)
def admin_stats():
    return jsonify(record_service.global_stats(current_identity()))


@app.route('/api/v1/admin/users/<user_id>/status', methods=['PUT'])
@login_required
@require_permission(policy, Operation.SET_USER_ACTIVE)
def admin_set_user_status(user_id):
    data = _json_body()
    return jsonify(credential_store.set_user_active(user_id, data.get('is_active'),
                                                    acting_user_id=current_identity().user_id))


@app.route('/api/v1/admin/users/<user_id>/role', methods=['POST', 'PUT'])
@app.route('/api/v1/admin/users/<user_id>/roles', methods=['POST', 'PUT'])
@login_required
@require_permission(policy, Operation.SET_USER_ROLE)
def admin_set_user_role(user_id):
    data = _json_body()
    return jsonify(credential_store.set_user_role(user_id, data.get('role'),
                                                  acting_user_id=current_identity().user_id))
