# civic_portal/routes.py

# JSON API consumed by the portal UI: identity verification, accounts,
# polls, comments, suggestions and the admin gateway.

from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import current_user, get_jwt_identity, jwt_required

from civic_portal import db, limiter
from civic_portal.errors import InvalidInput, PortalError
from civic_portal.services import services

api = Blueprint('api', __name__, url_prefix='/api')


def _json_body():
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise InvalidInput("Request body must be a JSON object")
    return body


def _query_flag(name):
    value = (request.args.get(name) or '').lower()
    if value in ('', '0', 'false'):
        return False
    if value in ('1', 'true'):
        return True
    raise InvalidInput(f"{name} must be true or false")


def _vote_to_dict(vote):
    return {
        "pollId": vote.poll_id,
        "optionId": vote.option_id,
        "isAnonymous": vote.is_anonymous,
        "district": vote.district,
        "castAt": vote.cast_at.isoformat(),
    }


@api.route('/verify-identity', methods=['POST'])
@limiter.limit("20/minute")
def verify_identity():
    body = _json_body()
    identity = services().verifier.verify(
        body.get('voterId'), body.get('lastName'),
        body.get('dob'), body.get('address'),
        client=request.remote_addr,
    )
    return jsonify({"success": True, "district": identity.district, "fullName": identity.full_name})


@api.route('/signup', methods=['POST'])
@limiter.limit("10/minute")
def signup():
    body = _json_body()
    session = services().accounts.sign_up(
        body.get('fullName'),
        body.get('voterId'),
        body.get('username'),
        body.get('password'),
        notification_prefs=body.get('notifications'),
        secondary_factors=(body.get('dob'), body.get('address')),
        email=body.get('email'),
        phone=body.get('phone'),
        client=request.remote_addr,
    )
    return jsonify(dict(success=True, **session.to_dict())), 201


@api.route('/login', methods=['POST'])
@limiter.limit("10/minute")
def login():
    body = _json_body()
    session = services().accounts.log_in(body.get('username'), body.get('password'))
    return jsonify(dict(success=True, **session.to_dict()))


@api.route('/reset-password', methods=['POST'])
@limiter.limit("5/minute")
def reset_password():
    body = _json_body()
    # Development shortcut only; production delivers out of band
    echo = bool(current_app.config.get('RESET_ECHO_TEMP_CREDENTIAL'))
    reset = services().accounts.request_password_reset(
        body.get('lastName'), body.get('voterId'), body.get('verifier'),
        client=request.remote_addr, echo=echo,
    )
    response = {"success": True}
    if echo:
        response["message"] = "A temporary password has been issued."
        response["tempCredential"] = reset.temp_credential
    else:
        response["message"] = "A temporary password has been sent to your registered contact method."
    return jsonify(response)


@api.route('/me', methods=['GET'])
@jwt_required()
def me():
    return jsonify({"success": True, "account": current_user.to_dict()})


@api.route('/me/notifications', methods=['PATCH'])
@jwt_required()
def update_notifications():
    account = services().accounts.update_notification_preferences(current_user.id, _json_body())
    return jsonify({"success": True, "account": account.to_dict()})


@api.route('/polls', methods=['GET'])
def list_polls():
    return jsonify({"success": True, "polls": [p.to_dict() for p in services().polls.list_polls()]})


@api.route('/polls/<int:poll_id>', methods=['GET'])
def get_poll(poll_id):
    return jsonify({"success": True, "poll": services().polls.get_poll(poll_id).to_dict()})


@api.route('/polls/<int:poll_id>/votes', methods=['POST'])
@jwt_required()
def cast_vote(poll_id):
    body = _json_body()
    validator = services().validator
    vote = services().polls.cast_vote(
        poll_id,
        current_user.id,
        validator.parse_int(body.get('optionId'), 'optionId'),
        is_anonymous=validator.parse_bool(body.get('isAnonymous', False), 'isAnonymous'),
    )
    return jsonify({"success": True, "vote": _vote_to_dict(vote)})


@api.route('/polls/<int:poll_id>/tally', methods=['GET'])
def tally(poll_id):
    return jsonify(dict(success=True, **services().polls.tally(poll_id)))


@api.route('/polls/<int:poll_id>/options/<int:option_id>/voters', methods=['GET'])
def list_voters(poll_id, option_id):
    voters = services().polls.list_voters(poll_id, option_id)
    return jsonify({"success": True, "voters": voters})


@api.route('/polls/<int:poll_id>/comments', methods=['GET'])
@jwt_required(optional=True)
def list_comments(poll_id):
    if _query_flag('includeHidden'):
        caller = current_user if get_jwt_identity() is not None else None
        comments = services().gateway.list_comments(caller, poll_id)
    else:
        comments = services().polls.list_comments(poll_id)
    return jsonify({"success": True, "comments": [c.to_dict() for c in comments]})


@api.route('/polls/<int:poll_id>/comments', methods=['POST'])
@jwt_required()
@limiter.limit("30/minute")
def post_comment(poll_id):
    body = _json_body()
    comment = services().polls.post_comment(poll_id, current_user.id, body.get('content'))
    return jsonify({"success": True, "comment": comment.to_dict()}), 201


@api.route('/suggestions', methods=['GET'])
def list_suggestions():
    suggestions = services().suggestions.list_all()
    return jsonify({"success": True, "suggestions": [s.to_dict() for s in suggestions]})


@api.route('/suggestions', methods=['POST'])
@jwt_required()
@limiter.limit("10/minute")
def submit_suggestion():
    body = _json_body()
    suggestion = services().suggestions.submit(
        current_user.id, body.get('title'), body.get('description'), body.get('category'),
    )
    return jsonify({"success": True, "suggestion": suggestion.to_dict()}), 201


@api.route('/admin-action', methods=['POST'])
@jwt_required()
def admin_action():
    body = _json_body()
    try:
        result = services().gateway.dispatch(current_user, body.get('action'), body.get('payload'))
    except PortalError:
        raise
    except Exception:
        db.session.rollback()
        current_app.logger.exception(f"Admin action {body.get('action')!r} failed")
        return jsonify({"success": False, "error": "InternalError",
                        "message": "The admin action could not be completed."}), 500
    return jsonify(result)
