#! /usr/bin/env python
# -*- coding: utf-8 -*-

"""
    支付宝签名相关实现(待签名字符串, RSA/RSA2 签名及验签, 字符集转换等)
"""

from urllib import parse

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from src.exceptions import (
    InvalidConfigException,
    InvalidKeyException,
    InvalidSignatureFormatException,
)

import os
import enum
import json
import base64
import codecs
import binascii
import textwrap
import OpenSSL

# 异步通知未声明 charset 时使用的字符集(gbk 为 gb2312 的超集)
LEGACY_CHARSET = "gbk"


class Mode(enum.Enum):
    """
    网关环境
    """
    normal = "https://openapi.alipay.com/gateway.do"
    dev = "https://openapi.alipaydev.com/gateway.do"
    sandbox = "https://openapi.alipaydev.com/gateway.do"


class SignType(enum.Enum):
    """
    签名方式
        RSA: SHA1withRSA
        RSA2: SHA256withRSA
    """
    RSA = "RSA"
    RSA2 = "RSA2"

    def hash_algorithm(self):
        if self is SignType.RSA:
            return hashes.SHA1()
        return hashes.SHA256()


def base_uri(mode):
    """
    根据环境获取网关地址
    :param mode: Mode 或环境名称(normal, dev, sandbox)
    :return:
    """
    if isinstance(mode, Mode):
        return mode.value
    try:
        return Mode[str(mode).lower()].value
    except KeyError:
        raise InvalidConfigException("Unknown Alipay mode [{}]".format(mode))


def get_sign_type(value, exception=InvalidSignatureFormatException):
    if isinstance(value, SignType):
        return value
    try:
        return SignType(value)
    except ValueError:
        raise exception("Unsupported sign_type [{}]".format(value))


def wrap_key(key, header):
    """
    将裸 base64 密钥按 64 列折行并加上 PEM 头尾, 已是 PEM 格式的原样返回
    :param key: 密钥内容
    :param header: PRIVATE KEY, RSA PRIVATE KEY 或 PUBLIC KEY
    :return:
    """
    key = key.strip()
    if key.startswith("-----"):
        return key

    body = "".join(key.split())
    if not body:
        raise InvalidKeyException("Key material is empty")
    try:
        base64.b64decode(body, validate=True)
    except (binascii.Error, ValueError):
        raise InvalidKeyException("Key material is neither PEM nor base64")

    return "-----BEGIN {0}-----\n{1}\n-----END {0}-----\n".format(
        header, "\n".join(textwrap.wrap(body, 64))
    )


def _read_key(key, name):
    if not key:
        raise InvalidKeyException("Missing {}".format(name))
    if isinstance(key, bytes):
        key = key.decode("ascii", "replace")
    if key.strip().endswith(".pem"):
        path = key.strip()
        if not os.path.isfile(path):
            raise InvalidKeyException("{} file [{}] not found".format(name, path))
        with open(path, "r") as f:
            return f.read()
    return key


def _to_rsa(pkey, name):
    if pkey.type() != OpenSSL.crypto.TYPE_RSA:
        raise InvalidKeyException("{} is not an RSA key".format(name))
    return pkey.to_cryptography_key()


def load_private_key(key):
    """
    加载应用私钥(PKCS#1 或 PKCS#8)
    :param key: PEM 内容, 裸 base64 或 .pem 文件路径
    :return: RSAPrivateKey
    """
    if isinstance(key, rsa.RSAPrivateKey):
        return key
    key = _read_key(key, "private key")

    if key.strip().startswith("-----"):
        candidates = [key.strip()]
    else:
        candidates = [wrap_key(key, "PRIVATE KEY"), wrap_key(key, "RSA PRIVATE KEY")]

    for pem in candidates:
        try:
            pkey = OpenSSL.crypto.load_privatekey(OpenSSL.crypto.FILETYPE_PEM, pem)
        except OpenSSL.crypto.Error:
            continue
        return _to_rsa(pkey, "private key")

    raise InvalidKeyException("Unable to parse private key")


def load_public_key(key):
    """
    加载支付宝公钥
    :param key: PEM 内容, 裸 base64 或 .pem 文件路径
    :return: RSAPublicKey
    """
    if isinstance(key, rsa.RSAPublicKey):
        return key
    key = wrap_key(_read_key(key, "public key"), "PUBLIC KEY")

    try:
        pkey = OpenSSL.crypto.load_publickey(OpenSSL.crypto.FILETYPE_PEM, key)
    except OpenSSL.crypto.Error:
        raise InvalidKeyException("Unable to parse public key")

    return _to_rsa(pkey, "public key")


def _to_bytes(value, charset):
    if isinstance(value, bytes):
        return value
    if isinstance(value, (dict, list)):
        value = json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    return str(value).encode(charset)


def canonicalize(params, charset="utf-8", exclude=("sign",)):
    """
    待签名字符串: 去掉 sign 及空值, 按 key 升序拼接 key=value&key=value
    :param params:
    :param charset: 编码待签名字符串使用的字符集
    :param exclude: 不参与签名的字段
    :return: bytes
    """
    pairs = []
    for key in sorted(params.keys(), key=lambda k: _to_bytes(k, charset)):
        value = params[key]
        if key in exclude or value is None or value == "" or value == b"":
            continue
        pairs.append(_to_bytes(key, charset) + b"=" + _to_bytes(value, charset))

    return b"&".join(pairs)


def sign(content, private_key, sign_type=SignType.RSA2):
    """
    使用应用私钥签名
    :param content: 待签名内容
    :param private_key:
    :param sign_type: RSA 或 RSA2
    :return: base64 编码的签名
    """
    if isinstance(content, str):
        content = content.encode("utf-8")
    key = load_private_key(private_key)
    signature = key.sign(
        content, padding.PKCS1v15(), get_sign_type(sign_type).hash_algorithm()
    )
    return str(base64.b64encode(signature), encoding="utf-8")


def verify(content, signature, public_key, sign_type=SignType.RSA2):
    """
    使用支付宝公钥验签, 签名不匹配返回 False
    签名不是合法 base64 时抛出 InvalidSignatureFormatException
    """
    if isinstance(content, str):
        content = content.encode("utf-8")
    sign_type = get_sign_type(sign_type)
    if isinstance(signature, bytes):
        signature = signature.decode("ascii", "replace")
    if not signature:
        raise InvalidSignatureFormatException("Signature is empty")

    try:
        raw = base64.b64decode("".join(signature.split()), validate=True)
    except (binascii.Error, ValueError):
        raise InvalidSignatureFormatException("Signature is not valid base64")

    key = load_public_key(public_key)
    try:
        key.verify(raw, content, padding.PKCS1v15(), sign_type.hash_algorithm())
    except InvalidSignature:
        return False
    return True


def generate_sign(params, private_key, sign_type=SignType.RSA2, charset="utf-8"):
    """
    对请求参数签名
    :param params:
    :param private_key:
    :param sign_type:
    :param charset:
    :return:
    """
    return sign(canonicalize(params, charset), private_key, sign_type)


def verify_sign(params, public_key, signature=None, charset="utf-8",
                default_sign_type=SignType.RSA2, exclude=("sign", "sign_type")):
    """
    对回调参数验签, 签名算法以参数中的 sign_type 为准
    :param params:
    :param public_key:
    :param signature: 为空时取 params["sign"]
    :param charset: 对方签名时使用的字符集
    :param default_sign_type: 参数中没有 sign_type 时使用
    :param exclude:
    :return: bool
    """
    signature = signature or params.get("sign")
    if not signature:
        return False
    sign_type = get_sign_type(params.get("sign_type") or default_sign_type)
    return verify(canonicalize(params, charset, exclude), signature, public_key, sign_type)


def same_charset(a, b):
    return codecs.lookup(a).name == codecs.lookup(b).name


def encoding(params, to_charset, from_charset):
    """
    字符集转换, bytes 类型的 key/value 由 from_charset 转为 to_charset
    str 类型已是解码后的文本, 不做处理
    :param params:
    :param to_charset:
    :param from_charset:
    :return:
    """
    if same_charset(to_charset, from_charset):
        return dict(params)

    def transcode(value):
        if isinstance(value, bytes):
            return value.decode(from_charset).encode(to_charset)
        return value

    return {transcode(key): transcode(value) for key, value in params.items()}


def flatten_params(params):
    """
    多值参数取最后一个
    """
    data = {}
    for key, value in params.items():
        if isinstance(value, (list, tuple)):
            value = value[-1] if value else ""
        data[key] = value
    return data


def decode_params(params, charset):
    """
    将 bytes 类型的 key/value 解码为文本
    """
    data = {}
    for key, value in params.items():
        if isinstance(key, bytes):
            key = key.decode(charset)
        if isinstance(value, bytes):
            value = value.decode(charset)
        data[key] = value
    return data


def parse_arguments(raw):
    """
    解析 urlencode 的 query/form 字符串, 值保留为原始 bytes 以便按声明的 charset 解码
    含非 ASCII 字符的 str 已是解码后的文本, 其中未转义的字符原样保留为 str
    :param raw: raw data to parse argument
    :return:
    """
    if isinstance(raw, str):
        try:
            raw = raw.encode("ascii")
        except UnicodeEncodeError:
            qs_params = parse.parse_qs(raw, keep_blank_values=True)
            return {name: values[-1] for name, values in qs_params.items()}
    qs_params = parse.parse_qs(raw.decode("latin-1"), keep_blank_values=True, encoding="latin-1")
    return {name: values[-1].encode("latin-1") for name, values in qs_params.items()}


def response_key(method):
    """
    alipay.trade.query -> alipay_trade_query_response
    """
    return "{}_response".format(method.replace(".", "_"))


def _reject_duplicates(pairs):
    data = {}
    for key, value in pairs:
        if key in data:
            raise ValueError("Duplicate key [{}] in response".format(key))
        data[key] = value
    return data


_DECODER = json.JSONDecoder(object_pairs_hook=_reject_duplicates)


def _skip_whitespace(body, index):
    while index < len(body) and body[index] in " \t\r\n":
        index += 1
    return index


def split_response(body):
    """
    解析响应的顶层对象, 支付宝对 <method>_response 的原始 JSON 文本签名
    任意层级出现重复 key 时抛出 ValueError
    :param body: 响应文本
    :return: {key: (value, 原始 JSON 文本)}
    """
    index = _skip_whitespace(body, 0)
    if body[index:index + 1] != "{":
        raise ValueError("Response is not a JSON object")
    index = _skip_whitespace(body, index + 1)

    members = {}
    if body[index:index + 1] == "}":
        index += 1
    else:
        while True:
            if body[index:index + 1] != '"':
                raise ValueError("Expecting property name at {}".format(index))
            key, index = _DECODER.raw_decode(body, index)
            index = _skip_whitespace(body, index)
            if body[index:index + 1] != ":":
                raise ValueError("Expecting ':' at {}".format(index))

            start = _skip_whitespace(body, index + 1)
            value, end = _DECODER.raw_decode(body, start)
            if key in members:
                raise ValueError("Duplicate key [{}] in response".format(key))
            members[key] = (value, body[start:end])

            index = _skip_whitespace(body, end)
            if body[index:index + 1] == ",":
                index = _skip_whitespace(body, index + 1)
                continue
            if body[index:index + 1] == "}":
                index += 1
                break
            raise ValueError("Expecting ',' or '}}' at {}".format(index))

    if _skip_whitespace(body, index) != len(body):
        raise ValueError("Extra data after response object")
    return members
