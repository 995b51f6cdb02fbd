class ClientContextMiddleware:
    """Attach ``client_ip`` and ``user_agent`` to the request for audit rows."""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        forwarded = request.META.get('HTTP_X_FORWARDED_FOR', '')
        ip = forwarded.split(',')[0].strip() if forwarded else ''
        request.client_ip = ip or request.META.get('HTTP_X_REAL_IP') or request.META.get('REMOTE_ADDR')
        request.user_agent = request.META.get('HTTP_USER_AGENT', '')[:512]
        return self.get_response(request)
