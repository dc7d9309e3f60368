"""
Visual Capture - Browser Scripts

JavaScript executed in the page through DriverAdapter.execute_script().
Every script is a WebDriver-style body: positional arguments arrive in
`arguments`, and a missing element argument means the document's
scrolling element.
"""

# ---------------------------------------------------------------------------
# Window and document
# ---------------------------------------------------------------------------

GET_VIEWPORT_SIZE = """
return (function () {
  var width = window.innerWidth || document.documentElement.clientWidth || document.body.clientWidth;
  var height = window.innerHeight || document.documentElement.clientHeight || document.body.clientHeight;
  return {width: width, height: height};
}).apply(null, arguments);
"""

GET_DOCUMENT_SIZE = """
return (function () {
  var html = document.documentElement;
  var body = document.body || {};
  var width = Math.max(html.clientWidth, html.scrollWidth, body.scrollWidth || 0);
  var height = Math.max(html.clientHeight, html.scrollHeight, body.scrollHeight || 0);
  return {width: width, height: height};
}).apply(null, arguments);
"""

GET_PIXEL_RATIO = """
return (function () {
  return String(window.devicePixelRatio || 1);
}).apply(null, arguments);
"""

GET_USER_AGENT = """
return (function () {
  return navigator.userAgent;
}).apply(null, arguments);
"""

# ---------------------------------------------------------------------------
# Element geometry
# ---------------------------------------------------------------------------

GET_ELEMENT_CONTENT_SIZE = """
return (function (element) {
  element = element || document.scrollingElement || document.documentElement;
  return {width: element.scrollWidth, height: element.scrollHeight};
}).apply(null, arguments);
"""

# Rect in document coordinates of the current context. The client flavor
# excludes borders and scrollbars.
GET_ELEMENT_RECT = """
return (function (element, isClient) {
  var rect = element.getBoundingClientRect();
  var scrollX = window.pageXOffset || document.documentElement.scrollLeft || 0;
  var scrollY = window.pageYOffset || document.documentElement.scrollTop || 0;
  if (!isClient) {
    return {x: rect.left + scrollX, y: rect.top + scrollY, width: rect.width, height: rect.height};
  }
  return {
    x: rect.left + scrollX + element.clientLeft,
    y: rect.top + scrollY + element.clientTop,
    width: element.clientWidth,
    height: element.clientHeight
  };
}).apply(null, arguments);
"""

GET_ELEMENT_SCROLL_OFFSET = """
return (function (element) {
  element = element || document.scrollingElement || document.documentElement;
  return {x: element.scrollLeft, y: element.scrollTop};
}).apply(null, arguments);
"""

GET_ELEMENT_TRANSLATE_OFFSET = """
return (function (element) {
  element = element || document.scrollingElement || document.documentElement;
  var transform = element.style.transform || element.style.webkitTransform || '';
  var match = /translate\\((-?[\\d.]+)px,\\s*(-?[\\d.]+)px\\)/.exec(transform);
  if (!match) return {x: 0, y: 0};
  return {x: -Number(match[1]), y: -Number(match[2])};
}).apply(null, arguments);
"""

# Content offset of the element: scroll plus any translate applied on top
GET_ELEMENT_INNER_OFFSET = """
return (function (element) {
  element = element || document.scrollingElement || document.documentElement;
  var x = element.scrollLeft;
  var y = element.scrollTop;
  var transform = element.style.transform || element.style.webkitTransform || '';
  var match = /translate\\((-?[\\d.]+)px,\\s*(-?[\\d.]+)px\\)/.exec(transform);
  if (match) {
    x -= Number(match[1]);
    y -= Number(match[2]);
  }
  return {x: x, y: y};
}).apply(null, arguments);
"""

IS_ELEMENT_SCROLLABLE = """
return (function (element) {
  element = element || document.scrollingElement || document.documentElement;
  return element.scrollWidth > element.clientWidth || element.scrollHeight > element.clientHeight;
}).apply(null, arguments);
"""

# ---------------------------------------------------------------------------
# Moving content
# ---------------------------------------------------------------------------

SCROLL_TO = """
return (function (element, offset) {
  element = element || document.scrollingElement || document.documentElement;
  element.scrollLeft = offset.x;
  element.scrollTop = offset.y;
  return {x: element.scrollLeft, y: element.scrollTop};
}).apply(null, arguments);
"""

TRANSLATE_TO = """
return (function (element, offset) {
  element = element || document.scrollingElement || document.documentElement;
  var value = 'translate(' + (-offset.x) + 'px, ' + (-offset.y) + 'px)';
  element.style.transform = value;
  element.style.webkitTransform = value;
  return {x: offset.x, y: offset.y};
}).apply(null, arguments);
"""

# ---------------------------------------------------------------------------
# Styles and attributes
# ---------------------------------------------------------------------------

GET_ELEMENT_STYLE_PROPERTIES = """
return (function (element, properties) {
  element = element || document.scrollingElement || document.documentElement;
  var result = {};
  properties.forEach(function (name) {
    result[name] = element.style.getPropertyValue(name);
  });
  return result;
}).apply(null, arguments);
"""

# Returns the previous values of the properties it sets
SET_ELEMENT_STYLE_PROPERTIES = """
return (function (element, properties) {
  element = element || document.scrollingElement || document.documentElement;
  var original = {};
  Object.keys(properties).forEach(function (name) {
    original[name] = element.style.getPropertyValue(name);
    if (properties[name]) element.style.setProperty(name, properties[name]);
    else element.style.removeProperty(name);
  });
  return original;
}).apply(null, arguments);
"""

SET_ELEMENT_ATTRIBUTES = """
return (function (element, attributes) {
  element = element || document.scrollingElement || document.documentElement;
  Object.keys(attributes).forEach(function (name) {
    element.setAttribute(name, String(attributes[name]));
  });
}).apply(null, arguments);
"""

SET_ELEMENT_MARKERS = """
return (function (elements, ids) {
  elements.forEach(function (element, index) {
    element.setAttribute('data-applitools-marker', ids[index]);
  });
}).apply(null, arguments);
"""

CLEANUP_ELEMENT_MARKERS = """
return (function (elements) {
  elements.forEach(function (element) {
    element.removeAttribute('data-applitools-marker');
  });
}).apply(null, arguments);
"""

# ---------------------------------------------------------------------------
# Focus
# ---------------------------------------------------------------------------

BLUR_ELEMENT = """
return (function (element) {
  element = element || document.activeElement;
  if (element && element.blur) element.blur();
  return element || null;
}).apply(null, arguments);
"""

FOCUS_ELEMENT = """
return (function (element) {
  if (element && element.focus) element.focus();
}).apply(null, arguments);
"""

GET_ELEMENT_XPATH = """
return (function (element) {
  var path = [];
  for (; element && element.nodeType === 1; element = element.parentNode) {
    var index = 1;
    for (var sibling = element.previousElementSibling; sibling; sibling = sibling.previousElementSibling) {
      if (sibling.tagName === element.tagName) index += 1;
    }
    path.unshift(element.tagName.toLowerCase() + '[' + index + ']');
  }
  return '/' + path.join('/');
}).apply(null, arguments);
"""
