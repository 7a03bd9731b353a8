#! /usr/bin/env python
# -*- coding: utf-8 -*-

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from src.alipay import Alipay
from src.support import canonicalize, response_key, sign

import json
import pytest

APP_ID = "2016082000295641"
DEV_GATEWAY = "https://openapi.alipaydev.com/gateway.do"


def generate_key_pair():
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private = key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode("ascii")
    public = key.public_key().public_bytes(
        serialization.Encoding.PEM,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode("ascii")
    return private, public


class FakeResponse(object):

    def __init__(self, content, status_code=200):
        self.content = content
        self.status_code = status_code


class FakeSession(object):
    """
    记录 post 调用并按顺序返回预置的响应
    """

    def __init__(self):
        self.calls = []
        self.responses = []
        self.error = None

    def queue(self, response):
        self.responses.append(response)

    def post(self, url, data=None, timeout=None):
        self.calls.append({"url": url, "data": data, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return self.responses.pop(0)

    def last_payload(self, charset="utf-8"):
        data = self.calls[-1]["data"]
        return {
            k: v.decode(charset) if isinstance(v, bytes) else v for k, v in data.items()
        }


@pytest.fixture(scope="session")
def app_keys():
    return generate_key_pair()


@pytest.fixture(scope="session")
def ali_keys():
    return generate_key_pair()


@pytest.fixture(scope="session")
def other_keys():
    return generate_key_pair()


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def client(app_keys, ali_keys, session):
    return Alipay(
        app_id=APP_ID,
        private_key=app_keys[0],
        ali_public_key=ali_keys[1],
        return_url="https://example.com/alipay/return/",
        notify_url="https://example.com/alipay/notify/",
        mode="dev",
        session=session,
    )


def signed_body(method, content, private_key, sign_type="RSA2", charset="utf-8"):
    """
    按支付宝格式构造响应: 对 <method>_response 的 JSON 文本签名
    """
    raw = json.dumps(content, ensure_ascii=False, separators=(",", ":"))
    signature = sign(raw.encode(charset), private_key, sign_type)
    body = '{{"{}":{},"sign":"{}"}}'.format(response_key(method), raw, signature)
    return body.encode(charset)


@pytest.fixture
def respond(session, ali_keys):
    """
    预置一个由支付宝私钥签名的成功响应
    """

    def _respond(method, content, **kwargs):
        session.queue(FakeResponse(signed_body(method, content, ali_keys[0], **kwargs)))

    return _respond


def sign_notification(params, private_key, sign_type="RSA2", charset="utf-8"):
    signed = dict(params, sign_type=sign_type)
    content = canonicalize(signed, charset, exclude=("sign", "sign_type"))
    signed["sign"] = sign(content, private_key, sign_type)
    return signed
