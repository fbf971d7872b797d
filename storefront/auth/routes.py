from flask import jsonify, request, session, current_app
from storefront.auth import auth
from storefront.auth.models import User
from storefront.cart.migration import merge_guest_cart
from storefront.cart.repository import SqlCartRepository
from storefront.cart.store import CartStore, guest_cart
from storefront.errors import BackendUnavailable


@auth.route('/login', methods=['POST'])
def login():
    """
    Body: {"username": "...", "password": "..."}

    On success the session is rebuilt for the user and the guest cart is
    merged into their saved cart; the merge report is returned.
    """
    data     = request.get_json(silent=True) or {}
    username = (data.get('username') or '').strip()
    password = data.get('password') or ''

    if not username or not password:
        return jsonify({'error': 'Username and password are required.'}), 400

    user = User.query.filter_by(username=username).first()
    if user is None or not user.check_password(password):
        # Deliberately vague — don't reveal which field was wrong
        current_app.logger.warning(f"Failed login attempt for username: {username}")
        return jsonify({'error': 'Invalid username or password.'}), 401

    guest = guest_cart()
    try:
        report = merge_guest_cart(guest, CartStore(SqlCartRepository(user.id)))
        merge, leftover = report.to_dict(), None
    except BackendUnavailable as e:
        # Unmerged guest lines survive the session reset below
        current_app.logger.error(f"Cart merge failed for user {user.id}; guest cart kept")
        merge, leftover = {'error': e.message}, session.get(guest.repository.key)

    # ── Populate session (minimal — only what's needed) ──
    session.clear()
    session['user_id'] = user.id
    session['role']    = user.role.value   # 'customer' or 'admin'
    session.permanent  = True              # respect PERMANENT_SESSION_LIFETIME
    if leftover:
        session[guest.repository.key] = leftover

    current_app.logger.info(f"User {user.username} logged in successfully.")
    return jsonify({
        'user':  {'id': user.id, 'name': user.name, 'role': user.role.value},
        'merge': merge,
    })


@auth.route('/logout', methods=['POST'])
def logout():
    """Clear the session; the next cart is a fresh guest cart."""
    user_id = session.get('user_id')
    session.clear()
    if user_id:
        current_app.logger.info(f"User {user_id} logged out.")
    return jsonify({'ok': True})
