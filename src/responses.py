#! /usr/bin/env python
# -*- coding: utf-8 -*-

"""
    返回给调用方(或支付宝)的 HTTP 响应内容, 由框架层负责输出
"""


class Response(object):

    def __init__(self, body="", status=200, headers=None):
        self.body = body
        self.status = status
        self.headers = dict(headers or {"Content-Type": "text/html; charset=utf-8"})

    def __repr__(self):
        return "<{} [{}]>".format(self.__class__.__name__, self.status)


class RedirectResponse(Response):
    """
    GET 跳转至支付网关
    """

    def __init__(self, url):
        super(RedirectResponse, self).__init__(
            body="", status=302, headers={"Location": url}
        )
        self.url = url
