import logging
import time

from pytest import raises

from dirserve.context import RequestContext, State, get_http_status
from dirserve.exceptions import ScriptTimeout
from dirserve.http.request import Request
from dirserve.testing import RecordingTransport


def make_context(harness, url='/', headers=None):
    rp = harness.request_processor
    context = RequestContext(rp, Request('GET', url, headers or {}), RecordingTransport(), rp.config)
    context.timeout.cancel()
    return context

def script(harness, body):
    harness.write('dirserve_scripts/test.py', body)
    return harness.hit('/test')


# send
# ====

def test_send_with_nothing_is_an_empty_200(harness):
    response = script(harness, '''
        def handle(context):
            context.send()
    ''')
    assert response.status == 200
    assert response.body == b''
    assert response.headers['Content-Length'] == '0'
    assert response.headers['Content-Type'] == 'text/html; charset=utf-8'

def test_send_a_string(harness):
    response = script(harness, '''
        def handle(context):
            context.send(None, 'Greetings, program!')
    ''')
    assert response.text == 'Greetings, program!'
    assert response.headers['Content-Length'] == '19'

def test_content_length_counts_bytes(harness):
    response = script(harness, '''
        def handle(context):
            context.send(None, '☄')
    ''')
    assert response.headers['Content-Length'] == '3'

def test_send_a_dict_as_json(harness):
    response = script(harness, '''
        def handle(context):
            context.send(None, {'greeting': 'hello'})
    ''')
    assert response.headers['Content-Type'] == 'application/json'
    assert response.text == '{"greeting": "hello"}'

def test_send_a_status(harness):
    response = script(harness, '''
        def handle(context):
            context.send(201, 'Made it.')
    ''')
    assert response.status == 201
    assert response.text == 'Made it.'

def test_send_uses_a_status_code_set_beforehand(harness):
    response = script(harness, '''
        def handle(context):
            context.status_code = 202
            context.headers['Content-Type'] = 'text/plain'
            context.send(None, 'Accepted.')
    ''')
    assert response.status == 202
    assert response.headers['Content-Type'] == 'text/plain'

def test_send_404_has_a_canned_body(harness):
    response = script(harness, '''
        def handle(context):
            context.send(404)
    ''')
    assert response.status == 404
    assert response.text == '404 Not Found'
    assert response.headers['Content-Length'] == '13'

def test_send_an_error_message_is_a_500(harness):
    response = script(harness, '''
        def handle(context):
            context.send('Something broke.')
    ''')
    assert response.status == 500
    assert response.text == '500 Internal Server Error'
    assert response.context.error == 'Something broke.'

def test_send_an_error_keeps_an_error_status(harness):
    response = script(harness, '''
        def handle(context):
            context.status_code = 503
            context.send('Down for maintenance.', 'Back soon.')
    ''')
    assert response.status == 503
    assert response.text == 'Back soon.'

def test_send_302_redirects(harness):
    response = script(harness, '''
        def handle(context):
            context.send(302, '/elsewhere')
    ''')
    assert response.status == 302
    assert response.headers['Location'] == '/elsewhere'
    assert response.text == '302 Found'
    assert response.headers['Content-Length'] == '9'

def test_send_304_has_no_headers_or_body(harness):
    response = script(harness, '''
        def handle(context):
            context.send(304)
    ''')
    assert response.status == 304
    assert dict(response.headers) == {}
    assert response.body == b''

def test_second_send_is_dropped(harness):
    response = script(harness, '''
        def handle(context):
            context.first = context.send(None, 'one')
            context.second = context.send(None, 'two')
    ''')
    assert response.text == 'one'
    assert response.context.first is True
    assert response.context.second is False
    assert response.starts == 1

def test_send_after_write_head_finishes_the_body(harness):
    response = script(harness, '''
        def handle(context):
            context.write_head(200, {'Content-Type': 'text/plain'})
            context.write('Hello, ')
            context.send(None, 'world!')
    ''')
    assert response.headers['Content-Type'] == 'text/plain'
    assert response.text == 'Hello, world!'
    assert response.context.closed

def test_send_error_after_write_head_just_closes(harness):
    response = script(harness, '''
        def handle(context):
            context.write_head(200)
            context.write('partial')
            context.send(ValueError('oops'))
    ''')
    assert response.status == 200
    assert response.text == 'partial'
    assert isinstance(response.context.error, ValueError)


# write_head / write / close
# ==========================

def test_write_head_twice_raises(harness):
    response = script(harness, '''
        def handle(context):
            context.write_head(200)
            try:
                context.write_head(200)
            except RuntimeError:
                context.write('raised')
            context.close()
    ''')
    assert response.text == 'raised'
    assert response.starts == 1

def test_write_sends_the_head_first(harness):
    response = script(harness, '''
        def handle(context):
            context.status_code = 201
            context.write('streamed')
            context.close()
    ''')
    assert response.status == 201
    assert response.headers['Content-Type'] == 'text/html; charset=utf-8'
    assert response.text == 'streamed'

def test_close_without_anything_sent_is_an_empty_response(harness):
    response = script(harness, '''
        def handle(context):
            context.close()
    ''')
    assert response.status == 200
    assert response.headers['Content-Length'] == '0'
    assert response.ended

def test_close_only_happens_once(harness, caplog):
    with caplog.at_level(logging.INFO, logger='dirserve.context'):
        response = script(harness, '''
            def handle(context):
                context.close()
                context.close(ValueError('too late'))
        ''')
    assert response.context.error is None
    assert len(caplog.records) == 1

def test_writes_after_close_are_dropped(harness):
    response = script(harness, '''
        def handle(context):
            context.send(None, 'done')
            context.wrote = context.write('more')
    ''')
    assert response.text == 'done'
    assert response.context.wrote is False

def test_transport_errors_close_the_context(harness):
    class BrokenTransport(RecordingTransport):
        def write(self, data):
            raise BrokenPipeError()
    rp = harness.request_processor
    transport = BrokenTransport()
    context = RequestContext(rp, Request('GET', '/'), transport, rp.config)
    context.send(None, 'hello')
    assert context.closed
    assert isinstance(context.error, BrokenPipeError)
    assert transport.ended


# process
# =======

def test_process_only_runs_once(harness):
    context = make_context(harness)
    context.process()
    with raises(RuntimeError):
        context.process()

def test_state_moves_forward(harness):
    context = make_context(harness)
    assert context.state is State.created
    assert not context.responded
    context.write_head(200)
    assert context.state is State.responding
    assert context.responded
    assert not context.closed
    context.close()
    assert context.state is State.closed
    assert context.wait(0)


# Timeouts
# ========

def test_script_that_never_responds_times_out(harness):
    harness.write_config('script_timeout: 0.1\n')
    response = script(harness, '''
        def handle(context):
            pass
    ''')
    assert response.status == 500
    assert isinstance(response.context.error, ScriptTimeout)
    assert str(response.context.error) == 'Script timeout'

def test_late_sends_after_a_timeout_are_dropped(harness):
    harness.write_config('script_timeout: 0.1\n')
    response = script(harness, '''
        def handle(context):
            pass
    ''')
    assert response.context.send(None, 'too late') is False
    assert response.text == '500 Internal Server Error'
    assert response.starts == 1

def test_timeout_while_responding_closes_the_response(harness):
    harness.write_config('script_timeout: 0.1\n')
    response = script(harness, '''
        def handle(context):
            context.write_head(200, {'Content-Type': 'text/plain'})
            context.write('partial')
    ''')
    assert response.status == 200
    assert response.text == 'partial'
    assert isinstance(response.context.error, ScriptTimeout)
    assert response.ended

def test_responding_in_time_cancels_the_timeout(harness):
    harness.write_config('script_timeout: 0.1\n')
    response = script(harness, '''
        def handle(context):
            context.send(None, 'quick')
    ''')
    time.sleep(0.2)
    assert response.text == 'quick'
    assert response.context.error is None
    assert response.starts == 1


# Logging
# =======

def test_every_request_is_logged(harness, caplog):
    harness.write('hello.txt', 'Greetings, program!')
    with caplog.at_level(logging.INFO, logger='dirserve.context'):
        harness.hit('/hello.txt?x=1')
    record, = caplog.records
    assert record.levelno == logging.INFO
    timestamp, status, method, url = record.getMessage().split('\t')
    assert timestamp.endswith('Z')
    assert (status, method, url) == ('200', 'GET', '/hello.txt?x=1')

def test_errors_are_logged_with_detail(harness, caplog):
    harness.write_config('handlers: ["bogus:./x"]\n')
    with caplog.at_level(logging.INFO, logger='dirserve.context'):
        harness.hit('/')
    record, = caplog.records
    assert record.levelno == logging.ERROR
    assert record.getMessage().split('\t')[1:] == \
        ['500', 'GET', '/', 'Unrecognised handler: bogus:./x']

def test_debug_mode_logs_tracebacks(harness, caplog):
    harness.write_config('debug: yes\n')
    with caplog.at_level(logging.INFO, logger='dirserve.context'):
        script(harness, '''
            def handle(context):
                raise ValueError('boom')
        ''')
    record, = caplog.records
    assert 'Traceback (most recent call last)' in record.getMessage()
    assert record.getMessage().endswith('ValueError: boom')


# Debug output
# ============

def test_errors_dont_leak_details_by_default(harness):
    response = script(harness, '''
        def handle(context):
            raise ValueError('boom')
    ''')
    assert response.text == '500 Internal Server Error'

def test_debug_mode_shows_error_details(harness):
    harness.write_config('debug: yes\n')
    response = script(harness, '''
        def handle(context):
            raise ValueError('<boom>')
    ''')
    assert response.status == 500
    assert response.text.startswith('500 Internal Server Error<hr /><pre>Traceback')
    assert 'ValueError: &lt;boom&gt;' in response.text
    assert '&lt;Request GET /test&gt;' in response.text
    assert response.headers['Content-Length'] == str(len(response.body))


# Helpers
# =======

def test_get_http_status():
    assert get_http_status(404) == '404 Not Found'
    assert get_http_status(201) == '201 Created'
    assert get_http_status(299) == '299'

def test_html_encode_is_available_to_scripts(harness):
    response = script(harness, '''
        def handle(context):
            context.send(None, context.html_encode('<b>'))
    ''')
    assert response.text == '&lt;b&gt;'

def test_get_content_type(harness):
    context = make_context(harness)
    assert context.get_content_type('/a/style.CSS') == 'text/css'
    assert context.get_content_type('/a/data.json') == 'application/json'
    assert context.get_content_type('/a/mystery.xyzzy') == 'application/octet-stream'

def test_get_redirect_url_is_relative_by_default(harness):
    context = make_context(harness, '/docs?sort=name')
    assert context.get_redirect_url() == '/docs?sort=name'
    assert context.get_redirect_url('/docs/') == '/docs/?sort=name'

def test_get_redirect_url_can_be_absolute(harness):
    harness.write_config('relative_redirects: no\n')
    harness.request_processor.config_store.refresh()
    context = make_context(harness, '/docs', {'Host': 'example.com'})
    assert context.get_redirect_url('/docs/') == 'http://example.com/docs/'

def test_get_redirect_url_falls_back_to_the_configured_address(harness):
    harness.write_config('relative_redirects: no\nport: 9000\n')
    harness.request_processor.config_store.refresh()
    context = make_context(harness, '/docs')
    assert context.get_redirect_url('/docs/') == 'http://localhost:9000/docs/'
