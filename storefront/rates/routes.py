from flask import jsonify, request, current_app
from storefront.rates import rates
from storefront.rates.provider import DatabaseRateProvider


@rates.route('/current')
def current():
    """Latest rate snapshot, or null while none has been published."""
    snapshot = DatabaseRateProvider().get_current_rate()
    return jsonify({'rate': snapshot.to_dict() if snapshot else None})


@rates.route('/history')
def history():
    days = request.args.get('days', type=int) or current_app.config['RATE_HISTORY_DEFAULT_DAYS']
    snapshots = DatabaseRateProvider().get_rate_history(days)
    return jsonify({
        'days':  days,
        'rates': [s.to_dict() for s in snapshots],
    })
