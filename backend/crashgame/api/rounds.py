from flask import Blueprint, jsonify, request, abort
from crashgame import get_engine
from crashgame.services.crash.fairness import TIERS, seed_digest, verify_crash_point

rounds = Blueprint('rounds', __name__)
accounts = Blueprint('accounts', __name__)


def _engine_archive():
    engine = get_engine()
    if engine.archive is None:
        abort(404, description='Round archive is not configured')
    return engine.archive


@rounds.route('/current', methods=['GET'])
def current_round():
    return jsonify(get_engine().snapshot())


@rounds.route('/recent-payouts', methods=['GET'])
def recent_payouts():
    return jsonify({'recent_payouts': get_engine().recent_payouts()})


@rounds.route('/history', methods=['GET'])
def round_history():
    try:
        limit = int(request.args.get('limit', 20))
    except (TypeError, ValueError):
        return jsonify({'error': 'limit must be an integer'}), 400
    limit = max(1, min(limit, 100))
    return jsonify(_engine_archive().recent(limit))


@rounds.route('/<int:record_id>/verify', methods=['GET'])
def verify_archived_round(record_id):
    record = _engine_archive().get(record_id)
    if record is None:
        abort(404, description='Round not found')
    policy = get_engine().generator.policy
    recomputed = verify_crash_point(
        record['server_seed'],
        tier=record['tier'],
        scaling_factor=record['scaling_factor'],
        risk_score=record['risk_score'],
        bet_count=record['bet_count'],
        policy=policy,
    )
    return jsonify({
        'round': record,
        'recomputed_crash_point': recomputed,
        'digest_matches': seed_digest(record['server_seed']) == record['seed_digest'],
        'verified': recomputed == record['crash_point'],
    })


@rounds.route('/verify', methods=['POST'])
def verify_posted_round():
    """Recompute a crash point from a revealed seed and its published inputs."""
    data = request.get_json(silent=True) or {}
    server_seed = data.get('server_seed')
    tier = data.get('tier')
    if not server_seed or tier not in TIERS:
        return jsonify({'error': f"server_seed and tier ({', '.join(TIERS)}) are required"}), 400
    try:
        scaling_factor = float(data.get('scaling_factor', 1.0))
        risk_score = float(data.get('risk_score', 0.0))
        bet_count = int(data.get('bet_count', 0))
        nonce = data.get('nonce')
        nonce = int(nonce) if nonce is not None else None
        recomputed = verify_crash_point(
            server_seed,
            data.get('client_seed') or '',
            nonce,
            tier=tier,
            scaling_factor=scaling_factor,
            risk_score=risk_score,
            bet_count=bet_count,
            policy=get_engine().generator.policy,
        )
    except (TypeError, ValueError) as exc:
        return jsonify({'error': str(exc)}), 400

    payload = {
        'crash_point': recomputed,
        'seed_digest': seed_digest(server_seed),
        'policy': get_engine().generator.policy.to_dict(),
    }
    if data.get('seed_digest'):
        payload['digest_matches'] = payload['seed_digest'] == data['seed_digest']
    if data.get('crash_point') is not None:
        try:
            payload['verified'] = recomputed == round(float(data['crash_point']), 2)
        except (TypeError, ValueError):
            return jsonify({'error': 'crash_point must be a number'}), 400
    return jsonify(payload)


@accounts.route('/<string:username>', methods=['GET'])
def account_balance(username):
    return jsonify(get_engine().settlement.accounts.get_or_create(username))
