# /// script
# requires-python = ">=3.9"
# dependencies = [
#     "shallowetag",
# ]
#
# [tool.uv.sources]
# shallowetag = { path = "../", editable = true }
# ///

from wsgiref.simple_server import make_server

from shallowetag import Sha512EtagPolicy, WSGIEtagMiddleware


def hello_app(environ, start_response):
    start_response("200 OK", [("Content-Type", "text/plain; charset=utf-8")])
    return [b"Hello, World!\n"]


application = WSGIEtagMiddleware(hello_app, policy=Sha512EtagPolicy(write_weak_etag=True))

if __name__ == "__main__":
    with make_server("", 8000, application) as server:
        print("Serving on http://localhost:8000, try: curl -i -H 'If-None-Match: *' http://localhost:8000/")
        server.serve_forever()
