# /// script
# requires-python = ">=3.9"
# dependencies = [
#     "shallowetag",
#     "fastapi",
#     "httpx",
# ]
#
# [tool.uv.sources]
# shallowetag = { path = "../", editable = true }
# ///


import asyncio

import httpx
from fastapi import FastAPI

from shallowetag import ASGIEtagMiddleware

app = FastAPI()


@app.get("/items/")
async def read_items():
    return {"items": ["apple", "banana", "cherry"]}


async def main():
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=ASGIEtagMiddleware(app))) as client:
        first = await client.get("http://testserver/items/")
        print(f"First:  status={first.status_code} etag={first.headers['etag'][:20]}... bytes={len(first.content)}")

        second = await client.get("http://testserver/items/", headers={"If-None-Match": first.headers["etag"]})
        print(f"Second: status={second.status_code} bytes={len(second.content)}")


if __name__ == "__main__":
    asyncio.run(main())
