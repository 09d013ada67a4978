FIXED_WALLET = "5tWbXq9cR2mKpLzN7vYhD3sEfGj8aT4uBwQx6kHnJeZ"


def fixed_wallet_resolver(user_id):
    return FIXED_WALLET


def unavailable_wallet_resolver(user_id):
    raise ConnectionError("profile service down")
