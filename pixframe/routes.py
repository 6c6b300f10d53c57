from typing import Any, Dict

from flask import Blueprint, Response, abort, current_app, jsonify, request

from .codec import encode_line, header_line, record_from_dict, record_to_dict
from .errors import IdentityConflict, InvalidRecord, RecordNotFound, StoreError
from .guard import SaveResult, StoreGuard
from .store import parse_table

bp = Blueprint('pixframe', __name__)


def _guard(kind: str) -> StoreGuard:
    guards = current_app.extensions['pixframe']
    if kind not in guards:
        abort(404)
    return guards[kind]


def _payload() -> Dict[str, Any]:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise InvalidRecord('expected a JSON object')
    return payload


def _as_json(guard: StoreGuard, record) -> Dict[str, Any]:
    return record_to_dict(record, guard.kind.schema)


def _saved(guard: StoreGuard, result: SaveResult):
    body = {
        'ok': True,
        'id': guard.kind.identity_of(result.record),
        'created': result.created,
        'record': _as_json(guard, result.record),
        'warnings': [w.describe() for w in result.warnings],
    }
    return jsonify(body), 201 if result.created else 200


@bp.errorhandler(RecordNotFound)
def _not_found(exc):
    return jsonify({'error': str(exc)}), 404


@bp.errorhandler(IdentityConflict)
def _conflict(exc):
    return jsonify({'error': str(exc)}), 409


@bp.errorhandler(InvalidRecord)
def _invalid(exc):
    return jsonify({'error': str(exc)}), 400


@bp.errorhandler(StoreError)
def _store_failed(exc):
    current_app.logger.error('store operation failed: %s', exc)
    return jsonify({'error': str(exc)}), 500


@bp.route('/api/health')
def api_health():
    return jsonify({'ok': True})


@bp.route('/api/<kind>')
def api_list(kind: str):
    guard = _guard(kind)
    fresh = request.args.get('fresh', '').lower() in ('1', 'true', 'yes')
    rows = guard.all(fresh=fresh)
    customer = request.args.get('customer', type=int)
    if customer is not None:
        rows = [r for r in rows if r.customer_number == customer]
    return jsonify([_as_json(guard, r) for r in rows])


@bp.route('/api/<kind>/next-id')
def api_next_id(kind: str):
    return jsonify({'id': _guard(kind).next_identity()})


@bp.route('/api/<kind>/<int:identity>')
def api_get(kind: str, identity: int):
    guard = _guard(kind)
    return jsonify(_as_json(guard, guard.get(identity, fresh=True)))


@bp.route('/api/<kind>', methods=['POST'])
def api_add(kind: str):
    guard = _guard(kind)
    record = record_from_dict(_payload(), guard.kind)
    return _saved(guard, guard.add(record))


@bp.route('/api/<kind>/<int:identity>', methods=['PUT'])
def api_upsert(kind: str, identity: int):
    guard = _guard(kind)
    if identity == 0:
        raise InvalidRecord(f'{guard.kind.identity_field} 0 is not a stored record; POST to create one')
    payload = _payload()
    payload[guard.kind.identity_field] = identity
    record = record_from_dict(payload, guard.kind)
    return _saved(guard, guard.add_or_update(record))


@bp.route('/api/<kind>/<int:identity>', methods=['DELETE'])
def api_delete(kind: str, identity: int):
    deleted = _guard(kind).delete(identity)
    return jsonify({'ok': True, 'deleted': deleted})


@bp.route('/api/<kind>/<int:identity>/folder', methods=['POST'])
def api_folder(kind: str, identity: int):
    path = _guard(kind).ensure_folder(identity)
    return jsonify({'ok': True, 'path': str(path)})


@bp.route('/api/<kind>/export.csv')
def api_export_csv(kind: str):
    guard = _guard(kind)
    schema = guard.kind.schema
    rows = guard.all()

    def gen():
        yield header_line(schema) + '\n'
        for r in rows:
            yield encode_line(r, schema) + '\n'

    filename = guard.store.path.name
    return Response(gen(), mimetype='text/csv', headers={'Content-Disposition': f'attachment; filename={filename}'})


@bp.route('/api/<kind>/import', methods=['POST'])
def api_import_csv(kind: str):
    """Replace the whole store with an uploaded file in the store's own CSV format."""
    guard = _guard(kind)
    table, errors = parse_table(request.get_data(), guard.kind, 'upload')
    if not table:
        raise InvalidRecord(f'no usable rows in upload ({len(errors)} skipped)')
    saved = guard.save_all(table.all())
    return jsonify({'ok': True, 'count': len(saved), 'skipped': [str(e) for e in errors]})
